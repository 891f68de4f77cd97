"""
Jurisdiction resolution for tax determination.

A sale is intra-jurisdiction (CGST + SGST) when the place of supply equals
the seller's home jurisdiction, otherwise cross-jurisdiction (IGST).
Names are compared trimmed and case-folded.  When no name is given the
jurisdiction falls back to the two-digit state code that prefixes a GSTIN.
"""

from dataclasses import dataclass

OTHER_TERRITORY = "Other Territory"

# GSTIN state code -> state name
GST_STATE_CODES: dict[str, str] = {
    "01": "Jammu and Kashmir",
    "02": "Himachal Pradesh",
    "03": "Punjab",
    "04": "Chandigarh",
    "05": "Uttarakhand",
    "06": "Haryana",
    "07": "Delhi",
    "08": "Rajasthan",
    "09": "Uttar Pradesh",
    "10": "Bihar",
    "11": "Sikkim",
    "12": "Arunachal Pradesh",
    "13": "Nagaland",
    "14": "Manipur",
    "15": "Mizoram",
    "16": "Tripura",
    "17": "Meghalaya",
    "18": "Assam",
    "19": "West Bengal",
    "20": "Jharkhand",
    "21": "Odisha",
    "22": "Chhattisgarh",
    "23": "Madhya Pradesh",
    "24": "Gujarat",
    "25": "Daman and Diu",
    "26": "Dadra and Nagar Haveli",
    "27": "Maharashtra",
    "28": "Andhra Pradesh",
    "29": "Karnataka",
    "30": "Goa",
    "31": "Lakshadweep",
    "32": "Kerala",
    "33": "Tamil Nadu",
    "34": "Puducherry",
    "35": "Andaman and Nicobar Islands",
    "36": "Telangana",
    "37": "Andhra Pradesh",
    "97": OTHER_TERRITORY,
}


def state_from_gstin(gstin: str | None) -> str | None:
    """Return the state named by a GSTIN's two-digit prefix, if known."""
    if not gstin or len(gstin.strip()) < 2:
        return None
    return GST_STATE_CODES.get(gstin.strip()[:2])


def normalize_jurisdiction(name: str | None, gstin: str | None = None) -> str | None:
    """Case-folded jurisdiction key, falling back to the GSTIN prefix."""
    if name and name.strip():
        return name.strip().casefold()
    state = state_from_gstin(gstin)
    if state is not None:
        return state.casefold()
    return None


@dataclass(frozen=True)
class Jurisdiction:
    """
    A seller's home jurisdiction.

    ``is_home`` answers whether a place of supply is intra-jurisdiction.
    An unresolvable place of supply counts as intra-jurisdiction.
    """

    name: str
    gstin: str | None = None

    @property
    def key(self) -> str | None:
        return normalize_jurisdiction(self.name, self.gstin)

    def is_home(self, place_of_supply: str | None, party_gstin: str | None = None) -> bool:
        other = normalize_jurisdiction(place_of_supply, party_gstin)
        home = self.key
        if other is None or home is None:
            return True
        return other == home
