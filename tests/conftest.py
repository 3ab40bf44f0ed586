"""Pytest configuration and fixtures."""

from typing import Any

import pytest

from clinibridge.models.model_clinical_trials import PatientProfile
from tests.factories import make_study


@pytest.fixture
def sample_study() -> dict[str, Any]:
    return make_study()


@pytest.fixture
def sample_profile() -> PatientProfile:
    return PatientProfile(
        condition="lung cancer",
        age=55,
        location="Boston",
        medications=["metformin"],
        additional_info="Diagnosed last year",
    )
