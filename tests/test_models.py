import pytest
from pydantic import ValidationError

from models import UserCreate, UserUpdate


def test_medium_is_normalised():
    user = UserCreate(phone="9000000001", medium=" Hindi ")
    assert user.medium == "hindi"


def test_unknown_medium_is_rejected():
    with pytest.raises(ValidationError):
        UserUpdate(medium="french")


def test_profile_update_only_carries_fields_that_were_sent():
    update = UserUpdate(district="Patna")
    assert update.model_dump(exclude_unset=True) == {"district": "Patna"}
