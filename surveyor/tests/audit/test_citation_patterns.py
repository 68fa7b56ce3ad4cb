import pytest

from surveyor.app.audit.citations import citation_matches
from surveyor.app.schemas.jurisdictions import ALL_JURISDICTIONS, Jurisdiction, PROFILES


@pytest.mark.parametrize(
    "code, citation",
    [
        (Jurisdiction.CA, "Cal. Civ. Proc. Code § 338(d)"),
        (Jurisdiction.NY, "N.Y. C.P.L.R. § 213(8)"),
        (Jurisdiction.TX, "Tex. Civ. Prac. & Rem. Code § 16.004"),
        (Jurisdiction.LA, "La. Civ. Code art. 3492"),
        (Jurisdiction.IL, "735 ILCS 5/13-205"),
        (Jurisdiction.PA, "42 Pa. Cons. Stat. § 5524"),
        (Jurisdiction.WV, "W. Va. Code § 55-2-12"),
        (Jurisdiction.OH, "Ohio Rev. Code § 2305.09"),
        (Jurisdiction.ID, "Idaho Code § 5-218"),
        (Jurisdiction.MD, "Md. Code Ann., Cts. & Jud. Proc. § 5-101"),
        (Jurisdiction.FL, "Florida Statutes section 95.11"),
        (Jurisdiction.GA, "GA Code § 9-3-31"),
    ],
)
def test_known_citation_forms_match(code, citation):
    assert citation_matches(code, citation)


@pytest.mark.parametrize(
    "code, citation",
    [
        (Jurisdiction.CA, "N.Y. C.P.L.R. § 213"),
        (Jurisdiction.VA, "W. Va. Code § 55-2-12"),
        (Jurisdiction.TX, "Tex. Civ. Prac. & Rem. Code"),
        (Jurisdiction.NY, "None found"),
        (Jurisdiction.NY, ""),
        (Jurisdiction.CA, "California law says three years"),
    ],
)
def test_mismatched_citations_are_rejected(code, citation):
    assert not citation_matches(code, citation)


def test_registry_covers_all_fifty_jurisdictions():
    assert len(ALL_JURISDICTIONS) == 50
    assert set(PROFILES) == set(ALL_JURISDICTIONS)


def test_every_profile_accepts_its_own_name_with_a_section():
    for code, profile in PROFILES.items():
        assert citation_matches(code, f"{profile.name} Code § 1-100"), code
