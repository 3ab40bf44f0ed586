"""Builders for registry documents and trial summaries used across tests."""

from typing import Any

from clinibridge.models.model_clinical_trials import TrialSummary

LONG_CRITERIA = (
    "Inclusion Criteria:\n\n* Age 18 to 65\n* Confirmed non-small cell lung cancer\n\n"
    "Exclusion Criteria:\n\n* Prior treatment with pembrolizumab\n* Pregnancy"
)


def make_study(
    nct_id: str | None = "NCT01234567",
    brief_title: str | None = "Drug X for Advanced Lung Cancer",
    criteria: str | None = LONG_CRITERIA,
    minimum_age: str | None = "18 Years",
    maximum_age: str | None = "65 Years",
    locations: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Build a ClinicalTrials.gov v2 study document."""
    ident: dict[str, Any] = {"officialTitle": "A Phase 2 Study of Drug X"}
    if nct_id is not None:
        ident["nctId"] = nct_id
    if brief_title is not None:
        ident["briefTitle"] = brief_title

    elig: dict[str, Any] = {"sex": "ALL", "healthyVolunteers": False}
    if criteria is not None:
        elig["eligibilityCriteria"] = criteria
    if minimum_age is not None:
        elig["minimumAge"] = minimum_age
    if maximum_age is not None:
        elig["maximumAge"] = maximum_age

    return {
        "protocolSection": {
            "identificationModule": ident,
            "statusModule": {
                "overallStatus": "RECRUITING",
                "startDateStruct": {"date": "2024-03-01"},
                "primaryCompletionDateStruct": {"date": "2027-12"},
            },
            "descriptionModule": {"briefSummary": "Tests Drug X in adults."},
            "designModule": {
                "studyType": "INTERVENTIONAL",
                "phases": ["PHASE2"],
                "enrollmentInfo": {"count": 120},
            },
            "eligibilityModule": elig,
            "contactsLocationsModule": {
                "locations": locations
                if locations is not None
                else [
                    {
                        "facility": "Massachusetts General Hospital",
                        "city": "Boston",
                        "state": "Massachusetts",
                        "country": "United States",
                    }
                ]
            },
            "armsInterventionsModule": {
                "interventions": [{"type": "DRUG", "name": "Drug X"}]
            },
            "sponsorCollaboratorsModule": {"leadSponsor": {"name": "Acme Oncology"}},
            "conditionsModule": {"conditions": ["Lung Cancer", "NSCLC"]},
        }
    }


def make_summary(nct_id: str = "NCT01234567", **overrides: Any) -> TrialSummary:
    fields: dict[str, Any] = {
        "nct_id": nct_id,
        "title": f"Trial {nct_id}",
        "summary": "No summary available.",
        "status": "RECRUITING",
        "phase": "Phase 2",
        "conditions": ["Lung Cancer"],
        "eligibility": "Adults with lung cancer",
        "eligibility_full": "Adults with lung cancer",
        "age_range": "18 Years - 65 Years",
        "age_min_years": 18,
        "age_max_years": 65,
        "sponsor": "Acme Oncology",
        "url": f"https://clinicaltrials.gov/study/{nct_id}",
    }
    fields.update(overrides)
    return TrialSummary(**fields)
