"""Integration tests for ClinicalTrialsClient (live ClinicalTrials.gov)."""

import unittest

import pytest

from clinibridge.data_sources.clinical_trials import ClinicalTrialsClient
from clinibridge.models.model_clinical_trials import TrialSearchOk
from clinibridge.services.trial_search import search_trials
from clinibridge.utils.cache import TTLCache


@pytest.mark.integration
class TestClinicalTrialsClient(unittest.IsolatedAsyncioTestCase):
    """Integration tests for ClinicalTrialsClient."""

    async def asyncSetUp(self):
        self.client = ClinicalTrialsClient()

    async def asyncTearDown(self):
        await self.client.close()

    async def test_search_recruiting_asthma(self):
        trials = await self.client.search(["asthma"])

        # Asthma always has recruiting trials; page size caps the count
        self.assertTrue(1 <= len(trials) <= 10)
        for trial in trials:
            self.assertTrue(trial.nct_id.startswith("NCT"))
            self.assertEqual(trial.status, "RECRUITING")
            self.assertEqual(trial.match_score, 0)
            self.assertLessEqual(len(trial.locations), 3)
            self.assertLessEqual(len(trial.eligibility), 503)

    async def test_search_with_location(self):
        trials = await self.client.search(["breast cancer"], "Boston")
        self.assertTrue(len(trials) >= 1)

    async def test_get_eligibility(self):
        trials = await self.client.search(["asthma"])
        raw = await self.client.get_eligibility(trials[0].nct_id)

        self.assertEqual(raw.nct_id, trials[0].nct_id)
        self.assertIsNotNone(raw.eligibility_criteria)
        self.assertIsNotNone(raw.fetched_at.tzinfo)

    async def test_search_trials_caches_second_call(self):
        cache = TTLCache()
        first = await search_trials("Asthma", ["wheezing"], "anywhere", cache=cache)
        second = await search_trials("wheezing", ["asthma"], None, cache=cache)

        self.assertIsInstance(first, TrialSearchOk)
        self.assertTrue(second.cached)
        self.assertEqual(
            [t.nct_id for t in first.trials], [t.nct_id for t in second.trials]
        )
