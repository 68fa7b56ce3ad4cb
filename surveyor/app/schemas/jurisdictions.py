"""
Jurisdiction registry.

Defines the fixed domain of 50 research targets (US states) together with
the static metadata every pipeline stage needs:

- display name and local statutory terminology (used in prompts)
- legislature base URL (used by the document fetcher)
- citation prefixes / pattern overrides (used by the Auditor)

The registry is static data. It MUST NOT be mutated at runtime.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Jurisdiction codes (FROZEN CONTRACT)
# ---------------------------------------------------------------------------

class Jurisdiction(str, Enum):
    """Two-letter postal code of one of the 50 US states."""

    AL = "AL"
    AK = "AK"
    AZ = "AZ"
    AR = "AR"
    CA = "CA"
    CO = "CO"
    CT = "CT"
    DE = "DE"
    FL = "FL"
    GA = "GA"
    HI = "HI"
    ID = "ID"
    IL = "IL"
    IN = "IN"
    IA = "IA"
    KS = "KS"
    KY = "KY"
    LA = "LA"
    ME = "ME"
    MD = "MD"
    MA = "MA"
    MI = "MI"
    MN = "MN"
    MS = "MS"
    MO = "MO"
    MT = "MT"
    NE = "NE"
    NV = "NV"
    NH = "NH"
    NJ = "NJ"
    NM = "NM"
    NY = "NY"
    NC = "NC"
    ND = "ND"
    OH = "OH"
    OK = "OK"
    OR = "OR"
    PA = "PA"
    RI = "RI"
    SC = "SC"
    SD = "SD"
    TN = "TN"
    TX = "TX"
    UT = "UT"
    VT = "VT"
    VA = "VA"
    WA = "WA"
    WV = "WV"
    WI = "WI"
    WY = "WY"


ALL_JURISDICTIONS: Tuple[Jurisdiction, ...] = tuple(Jurisdiction)

TOTAL_JURISDICTIONS = len(ALL_JURISDICTIONS)


# ---------------------------------------------------------------------------
# Static profile
# ---------------------------------------------------------------------------

class JurisdictionProfile(BaseModel):
    """
    Static metadata for one jurisdiction.
    """

    code: Jurisdiction
    name: str
    terms: Tuple[str, ...] = Field(
        ...,
        description="Names of the local statutory codes (prompt context)",
    )
    legislature_url: str = Field(
        ...,
        description="Legislature landing page fetched in document mode",
    )
    citation_prefixes: Tuple[str, ...] = Field(
        ...,
        description=(
            "Accepted citation lead-ins (Bluebook abbreviation, full name, "
            "postal code). A designator (§, art., ch., sec.) must follow."
        ),
    )
    citation_pattern: Optional[str] = Field(
        None,
        description="Additional full regex for citation forms without a designator",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


def _profile(
    code: Jurisdiction,
    name: str,
    terms: List[str],
    url: str,
    prefixes: List[str],
    pattern: Optional[str] = None,
) -> JurisdictionProfile:
    return JurisdictionProfile(
        code=code,
        name=name,
        terms=tuple(terms),
        legislature_url=url,
        citation_prefixes=tuple(prefixes + [name, code.value]),
        citation_pattern=pattern,
    )


J = Jurisdiction

PROFILES: Dict[Jurisdiction, JurisdictionProfile] = {
    p.code: p
    for p in [
        _profile(J.AL, "Alabama", ["Code of Alabama"], "https://alison.legislature.state.al.us/", ["Ala."]),
        _profile(J.AK, "Alaska", ["Alaska Statutes"], "https://www.akleg.gov/", ["Alaska Stat."]),
        _profile(J.AZ, "Arizona", ["Arizona Revised Statutes"], "https://www.azleg.gov/", ["Ariz.", "A.R.S."]),
        _profile(J.AR, "Arkansas", ["Arkansas Code"], "https://www.arkleg.state.ar.us/", ["Ark."]),
        _profile(J.CA, "California", ["California Codes", "Civil Code", "Penal Code"], "https://leginfo.legislature.ca.gov/", ["Cal."]),
        _profile(J.CO, "Colorado", ["Colorado Revised Statutes"], "https://leg.colorado.gov/", ["Colo.", "C.R.S."]),
        _profile(J.CT, "Connecticut", ["Connecticut General Statutes"], "https://www.cga.ct.gov/", ["Conn."]),
        _profile(J.DE, "Delaware", ["Delaware Code"], "https://legis.delaware.gov/", ["Del."]),
        _profile(J.FL, "Florida", ["Florida Statutes"], "http://www.leg.state.fl.us/", ["Fla."]),
        _profile(J.GA, "Georgia", ["Official Code of Georgia"], "https://www.legis.ga.gov/", ["Ga.", "O.C.G.A."]),
        _profile(J.HI, "Hawaii", ["Hawaii Revised Statutes"], "https://www.capitol.hawaii.gov/", ["Haw."]),
        _profile(J.ID, "Idaho", ["Idaho Code"], "https://legislature.idaho.gov/", []),
        _profile(
            J.IL, "Illinois", ["Illinois Compiled Statutes"], "https://www.ilga.gov/", ["Ill."],
            pattern=r"^\s*\d+\s+ILCS\s+\d+/[\w.\-()]+",
        ),
        _profile(J.IN, "Indiana", ["Indiana Code"], "https://iga.in.gov/", ["Ind."]),
        _profile(J.IA, "Iowa", ["Iowa Code"], "https://www.legis.iowa.gov/", []),
        _profile(J.KS, "Kansas", ["Kansas Statutes"], "https://www.kslegislature.org/", ["Kan.", "K.S.A."]),
        _profile(J.KY, "Kentucky", ["Kentucky Revised Statutes"], "https://legislature.ky.gov/", ["Ky.", "KRS"]),
        _profile(J.LA, "Louisiana", ["Louisiana Civil Code", "Liberative Prescription"], "https://legis.la.gov/", ["La."]),
        _profile(J.ME, "Maine", ["Maine Revised Statutes"], "https://legislature.maine.gov/", ["Me."]),
        _profile(J.MD, "Maryland", ["Maryland Code"], "https://mgaleg.maryland.gov/", ["Md."]),
        _profile(J.MA, "Massachusetts", ["Massachusetts General Laws"], "https://malegislature.gov/", ["Mass.", "M.G.L."]),
        _profile(J.MI, "Michigan", ["Michigan Compiled Laws"], "https://www.legislature.mi.gov/", ["Mich.", "MCL"]),
        _profile(J.MN, "Minnesota", ["Minnesota Statutes"], "https://www.revisor.mn.gov/", ["Minn."]),
        _profile(J.MS, "Mississippi", ["Mississippi Code"], "http://www.legislature.ms.gov/", ["Miss."]),
        _profile(J.MO, "Missouri", ["Missouri Revised Statutes"], "https://www.house.mo.gov/", ["Mo.", "RSMo"]),
        _profile(J.MT, "Montana", ["Montana Code"], "https://leg.mt.gov/", ["Mont.", "MCA"]),
        _profile(J.NE, "Nebraska", ["Nebraska Revised Statutes"], "https://nebraskalegislature.gov/", ["Neb."]),
        _profile(J.NV, "Nevada", ["Nevada Revised Statutes"], "https://www.leg.state.nv.us/", ["Nev.", "NRS"]),
        _profile(J.NH, "New Hampshire", ["New Hampshire Revised Statutes"], "http://www.gencourt.state.nh.us/", ["N.H.", "RSA"]),
        _profile(J.NJ, "New Jersey", ["New Jersey Statutes"], "https://www.njleg.state.nj.us/", ["N.J."]),
        _profile(J.NM, "New Mexico", ["New Mexico Statutes"], "https://www.nmlegis.gov/", ["N.M."]),
        _profile(J.NY, "New York", ["Consolidated Laws", "CPLR"], "https://www.nysenate.gov/", ["N.Y."]),
        _profile(J.NC, "North Carolina", ["North Carolina General Statutes"], "https://www.ncleg.gov/", ["N.C."]),
        _profile(J.ND, "North Dakota", ["North Dakota Century Code"], "https://www.ndlegis.gov/", ["N.D."]),
        _profile(J.OH, "Ohio", ["Ohio Revised Code"], "https://www.legislature.ohio.gov/", ["R.C."]),
        _profile(J.OK, "Oklahoma", ["Oklahoma Statutes"], "https://www.oklegislature.gov/", ["Okla."]),
        _profile(J.OR, "Oregon", ["Oregon Revised Statutes"], "https://www.oregonlegislature.gov/", ["Or.", "ORS"]),
        _profile(J.PA, "Pennsylvania", ["Pennsylvania Consolidated Statutes"], "https://www.legis.state.pa.us/", ["Pa."]),
        _profile(J.RI, "Rhode Island", ["Rhode Island General Laws"], "http://www.rilegislature.gov/", ["R.I."]),
        _profile(J.SC, "South Carolina", ["South Carolina Code of Laws"], "https://www.scstatehouse.gov/", ["S.C."]),
        _profile(J.SD, "South Dakota", ["South Dakota Codified Laws"], "https://sdlegislature.gov/", ["S.D.", "SDCL"]),
        _profile(J.TN, "Tennessee", ["Tennessee Code"], "https://www.capitol.tn.gov/", ["Tenn.", "T.C.A."]),
        _profile(J.TX, "Texas", ["Texas Statutes", "Texas Civil Practice"], "https://capitol.texas.gov/", ["Tex."]),
        _profile(J.UT, "Utah", ["Utah Code"], "https://le.utah.gov/", []),
        _profile(J.VT, "Vermont", ["Vermont Statutes"], "https://legislature.vermont.gov/", ["Vt."]),
        _profile(J.VA, "Virginia", ["Code of Virginia"], "https://virginiageneralassembly.gov/", ["Va."]),
        _profile(J.WA, "Washington", ["Revised Code of Washington"], "https://leg.wa.gov/", ["Wash.", "RCW"]),
        _profile(J.WV, "West Virginia", ["West Virginia Code"], "https://www.wvlegislature.gov/", ["W. Va.", "W.Va."]),
        _profile(J.WI, "Wisconsin", ["Wisconsin Statutes"], "https://legis.wisconsin.gov/", ["Wis."]),
        _profile(J.WY, "Wyoming", ["Wyoming Statutes"], "https://www.wyoleg.gov/", ["Wyo."]),
    ]
}


def get_profile(code: Jurisdiction) -> JurisdictionProfile:
    return PROFILES[Jurisdiction(code)]
