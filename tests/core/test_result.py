"""Tests for cortex_db.result module."""

import pytest

from cortex_db.errors import RelationshipError
from cortex_db.result import Err, Ok


class TestOk:
    def test_create_ok(self):
        result = Ok({"id": "T1"})
        assert result.value == {"id": "T1"}
        assert result.success is True
        assert result.is_ok() is True
        assert result.is_err() is False

    def test_unwrap_and_unwrap_or(self):
        assert Ok(10).unwrap() == 10
        assert Ok(10).unwrap_or(99) == 10

    def test_map(self):
        assert Ok(5).map(lambda x: x * 2).unwrap() == 10

    def test_to_dict(self):
        assert Ok("x").to_dict() == {"success": True}


class TestErr:
    def test_create_err(self):
        result = Err(RelationshipError("POV not found"))
        assert result.success is False
        assert result.is_err() is True

    def test_reason_uses_message(self):
        assert Err(RelationshipError("POV not found")).reason == "POV not found"
        assert Err(ValueError("plain")).reason == "plain"

    def test_unwrap_raises_error(self):
        with pytest.raises(RelationshipError, match="TRR not found"):
            Err(RelationshipError("TRR not found")).unwrap()

    def test_unwrap_or_and_map(self):
        err = Err(ValueError("x"))
        assert err.unwrap_or(7) == 7
        assert err.map(lambda v: v * 2).is_err()

    def test_to_dict(self):
        result = Err(RelationshipError("TRR and POV must belong to the same project"))
        assert result.to_dict() == {
            "success": False,
            "error": "TRR and POV must belong to the same project",
        }


class TestPatternMatching:
    def test_match_ok_and_err(self):
        def describe(result):
            match result:
                case Ok(value):
                    return f"ok:{value}"
                case Err(error):
                    return f"err:{error}"

        assert describe(Ok(1)) == "ok:1"
        assert describe(Err(ValueError("bad"))) == "err:bad"
