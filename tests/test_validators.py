"""
Tests for request validation.
"""

import uuid

import pytest
from hypothesis import given, settings, strategies as st

from userhub.api.validators import INVALID_ID_MESSAGE, INVALID_JSON_MESSAGE, UserValidator
from userhub.core.exceptions import ClientInputError
from tests.generators import invalid_id_strategy, non_string_strategy, user_body_strategy


class TestUserIdValidation:
    """UUID format checks."""

    @pytest.mark.parametrize("value", [
        str(uuid.uuid1()),
        str(uuid.uuid4()),
        str(uuid.uuid4()).upper(),
        "00000000-0000-0000-0000-000000000000",
    ])
    def test_valid_ids(self, value):
        assert UserValidator.validate_user_id(value) == value

    @pytest.mark.parametrize("value", [
        "",
        "123",
        "not-a-uuid",
        "6f1c1c51-2b58-4c1e-9f0a-2f0c6a4f1b1",
        "6f1c1c51-2b58-4c1e-9f0a-2f0c6a4f1b11-",
        "6f1c1c512b584c1e9f0a2f0c6a4f1b11",
        "6f1c1c51-2b58-9c1e-9f0a-2f0c6a4f1b11",
        "6f1c1c51-2b58-4c1e-cf0a-2f0c6a4f1b11",
        "zzzzzzzz-2b58-4c1e-9f0a-2f0c6a4f1b11",
    ])
    def test_invalid_ids(self, value):
        with pytest.raises(ClientInputError) as exc_info:
            UserValidator.validate_user_id(value)

        assert exc_info.value.status == 400
        assert exc_info.value.message == INVALID_ID_MESSAGE

    def test_non_string_is_not_uuid(self):
        assert not UserValidator.is_valid_uuid(None)
        assert not UserValidator.is_valid_uuid(uuid.uuid4())


class TestBodyParsing:
    """JSON decoding of request bodies."""

    def test_parses_object(self):
        assert UserValidator.parse_body('{"name": "x"}') == {"name": "x"}

    @pytest.mark.parametrize("raw", ["", None, "{", "name=x", '{"age": NaN}', '{"age": Infinity}'])
    def test_invalid_json(self, raw):
        with pytest.raises(ClientInputError) as exc_info:
            UserValidator.parse_body(raw)

        assert exc_info.value.message == INVALID_JSON_MESSAGE


class TestCreateValidation:
    """Create body rules."""

    def test_valid_body(self, john_doe):
        assert UserValidator.validate_create(john_doe) == john_doe

    def test_unknown_fields_dropped(self, john_doe):
        fields = UserValidator.validate_create(dict(john_doe, email="john@example.com"))
        assert set(fields) == {"name", "age", "hobbies"}

    def test_empty_hobbies_allowed(self, john_doe):
        assert UserValidator.validate_create(dict(john_doe, hobbies=[]))["hobbies"] == []

    @pytest.mark.parametrize("body, field", [
        ({"id": "x", "name": "John", "age": 30, "hobbies": []}, "id"),
        ({"age": 30, "hobbies": []}, "name"),
        ({"name": "   ", "age": 30, "hobbies": []}, "name"),
        ({"name": 42, "age": 30, "hobbies": []}, "name"),
        ({"name": "John", "hobbies": []}, "age"),
        ({"name": "John", "age": "30", "hobbies": []}, "age"),
        ({"name": "John", "age": True, "hobbies": []}, "age"),
        ({"name": "John", "age": float("nan"), "hobbies": []}, "age"),
        ({"name": "John", "age": 30}, "hobbies"),
        ({"name": "John", "age": 30, "hobbies": "reading"}, "hobbies"),
        ({"name": "John", "age": 30, "hobbies": ["x", 5]}, "hobbies"),
    ])
    def test_invalid_field_named_in_message(self, body, field):
        with pytest.raises(ClientInputError) as exc_info:
            UserValidator.validate_create(body)

        assert exc_info.value.status == 400
        assert f"'{field}'" in exc_info.value.message

    @pytest.mark.parametrize("body", [[], "John", 5, None])
    def test_body_must_be_object(self, body):
        with pytest.raises(ClientInputError):
            UserValidator.validate_create(body)


class TestUpdateValidation:
    """Partial update rules."""

    USER_ID = "6f1c1c51-2b58-4c1e-9f0a-2f0c6a4f1b11"

    def test_partial_body(self):
        assert UserValidator.validate_update({"age": 31}, self.USER_ID) == {"age": 31}

    def test_empty_body_is_no_op(self):
        assert UserValidator.validate_update({}, self.USER_ID) == {}

    def test_matching_id_accepted(self):
        patch = UserValidator.validate_update({"id": self.USER_ID, "name": "Jane"}, self.USER_ID)
        assert patch == {"name": "Jane"}

    def test_changing_id_rejected(self):
        with pytest.raises(ClientInputError) as exc_info:
            UserValidator.validate_update({"id": str(uuid.uuid4())}, self.USER_ID)

        assert "'id'" in exc_info.value.message

    def test_supplied_fields_are_validated(self):
        with pytest.raises(ClientInputError) as exc_info:
            UserValidator.validate_update({"name": ""}, self.USER_ID)

        assert "'name'" in exc_info.value.message


# ============================================================================
# Properties
# ============================================================================

@pytest.mark.property
@given(user_id=invalid_id_strategy)
@settings(max_examples=100, deadline=None)
def test_property_invalid_ids_rejected(user_id):
    """No string outside UUID format passes id validation."""
    assert not UserValidator.is_valid_uuid(user_id)


@pytest.mark.property
@given(body=user_body_strategy(), bad=non_string_strategy, position=st.integers(min_value=0, max_value=5))
@settings(max_examples=100, deadline=None)
def test_property_any_non_string_hobby_rejected(body, bad, position):
    """A single non-string element anywhere in hobbies fails validation."""
    hobbies = list(body["hobbies"])
    hobbies.insert(min(position, len(hobbies)), bad)

    with pytest.raises(ClientInputError) as exc_info:
        UserValidator.validate_create(dict(body, hobbies=hobbies))

    assert "'hobbies'" in exc_info.value.message
