"""Tests for database repository."""

from dealengine.db.repository import flatten_payload


class TestFlattenPayload:
    """Tests for override payload flattening."""

    def test_nested_payload(self):
        """Test nested objects and lists become dotted paths."""
        flat = flatten_payload(
            {"feeOverrides": [{"marketplace": "US", "referralRate": 0.1}], "note": None}
        )

        assert flat == {
            "feeOverrides.0.marketplace": "US",
            "feeOverrides.0.referralRate": "0.1",
        }


class TestEvaluations:
    """Tests for stored evaluations."""

    def test_save_and_get(self, repository):
        """Test saving and loading an evaluation payload."""
        payload = {
            "ean": "5012345678900",
            "quantity": 100,
            "decision": "Buy",
            "dealQualityScore": 91,
            "assumptions": {"version": "1.0.0"},
        }
        evaluation_id = repository.save_evaluation(payload, "deal-1")
        stored = repository.get_evaluation(evaluation_id)

        assert stored["dealId"] == "deal-1"
        assert stored["decision"] == "Buy"
        assert stored["score"] == 91
        assert stored["assumptionsVersion"] == "1.0.0"
        assert stored["payload"] == payload

    def test_get_missing(self, repository):
        """Test a missing id returns None."""
        assert repository.get_evaluation(999) is None

    def test_list_by_ean(self, repository):
        """Test listing filters by EAN, newest first."""
        first = repository.save_evaluation({"ean": "111", "decision": "Pass"})
        second = repository.save_evaluation({"ean": "111", "decision": "Buy"})
        repository.save_evaluation({"ean": "222", "decision": "Buy"})

        results = repository.list_evaluations(ean="111")

        assert [r["id"] for r in results] == [second, first]
        assert len(repository.list_evaluations()) == 3
        assert len(repository.list_evaluations(limit=1)) == 1


class TestOverrideSets:
    """Tests for override sets and their audit trail."""

    def test_save_records_changes(self, repository):
        """Test each changed field is recorded."""
        repository.save_override_set("deal-1", {"feeOverrides": {"marketplace": "US", "referralRate": 0.1}})
        repository.save_override_set("deal-1", {"feeOverrides": {"marketplace": "US", "referralRate": 0.12}})

        assert repository.get_override_set("deal-1") == {
            "feeOverrides": {"marketplace": "US", "referralRate": 0.12}
        }
        history = repository.get_assumption_history("deal-1")
        changes = [(h["field"], h["oldValue"], h["newValue"]) for h in history]
        assert ("feeOverrides.referralRate", "0.1", "0.12") in changes
        assert ("feeOverrides.marketplace", None, "US") in changes
        assert len(history) == 3

    def test_delete(self, repository):
        """Test deleting an override set."""
        repository.save_override_set("deal-2", {"a": 1})

        assert repository.delete_override_set("deal-2")
        assert repository.get_override_set("deal-2") is None
        assert not repository.delete_override_set("deal-2")

    def test_manual_change_record(self, repository):
        """Test recording a change directly."""
        repository.record_assumption_change("deal-3", "fees.US-amazon.fba_fee", None, "4.00", "user")
        history = repository.get_assumption_history("deal-3")

        assert history[0]["field"] == "fees.US-amazon.fba_fee"
        assert history[0]["source"] == "user"
        assert history[0]["timestamp"]


class TestPresets:
    """Tests for named presets."""

    def test_preset_crud(self, repository):
        """Test creating, updating, listing and deleting presets."""
        repository.save_preset("sea-freight", {"shippingOverrides": {"origin": "CN"}}, "Sea rates")
        repository.save_preset("eu-vat", {"feeOverrides": {"marketplace": "DE"}})
        repository.save_preset("sea-freight", {"shippingOverrides": {"origin": "VN"}}, "Updated")

        preset = repository.get_preset("sea-freight")
        assert preset["description"] == "Updated"
        assert preset["overrides"] == {"shippingOverrides": {"origin": "VN"}}
        assert [p["name"] for p in repository.list_presets()] == ["eu-vat", "sea-freight"]

        assert repository.delete_preset("eu-vat")
        assert repository.get_preset("eu-vat") is None
