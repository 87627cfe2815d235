import pytest

from pizza_service.core.errors import ForbiddenError
from pizza_service.core.policy import (
    AdminRole,
    Caller,
    DinerRole,
    FranchiseeRole,
    Requirement,
    Role,
    administers,
    is_authorized,
    require,
    role_from_binding,
)

ADMIN = Caller(id=1, name="Admin", email="a@test.com", roles=(AdminRole(),))
DINER = Caller(id=2, name="Diner", email="d@test.com", roles=(DinerRole(),))
FRANCHISEE = Caller(id=3, name="Franchisee", email="f@test.com", roles=(FranchiseeRole(1),))


class TestRoleBindings:

    def test_binding_kinds(self):
        assert role_from_binding("admin") == AdminRole()
        assert role_from_binding("diner", None) == DinerRole()
        assert role_from_binding("franchisee", 7) == FranchiseeRole(franchise_id=7)

    def test_franchisee_needs_object(self):
        with pytest.raises(ValueError):
            role_from_binding("franchisee")

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            role_from_binding("owner")

    def test_caller_from_token_claims(self):
        caller = Caller.from_claims({
            "id": 3,
            "name": "Franchisee",
            "email": "f@test.com",
            "roles": [{"role": "diner"}, {"role": "franchisee", "objectId": 4}],
        })
        assert caller.roles == (DinerRole(), FranchiseeRole(4))
        assert caller.is_role(Role.FRANCHISEE)
        assert not caller.is_admin
        assert caller.franchise_ids() == {4}

    def test_role_serialization(self):
        assert FranchiseeRole(4).to_dict() == {"role": "franchisee", "objectId": 4}
        assert AdminRole().to_dict() == {"role": "admin"}


class TestIsAuthorized:

    @pytest.mark.parametrize("required,scope", [
        (Requirement.ADMIN, None),
        (Requirement.FRANCHISEE, 99),
        (Requirement.SELF, 99),
    ])
    def test_admin_passes_everything(self, required, scope):
        assert is_authorized(ADMIN, required, scope)

    def test_franchisee_scoped_to_own_franchise(self):
        assert is_authorized(FRANCHISEE, Requirement.FRANCHISEE, 1)
        assert not is_authorized(FRANCHISEE, Requirement.FRANCHISEE, 2)
        assert not is_authorized(FRANCHISEE, Requirement.FRANCHISEE, None)
        assert not is_authorized(FRANCHISEE, Requirement.ADMIN)

    def test_diner_only_self(self):
        assert is_authorized(DINER, Requirement.SELF, 2)
        assert not is_authorized(DINER, Requirement.SELF, 99)
        assert not is_authorized(DINER, Requirement.FRANCHISEE, 1)
        assert not is_authorized(DINER, Requirement.ADMIN)

    def test_require_raises_forbidden(self):
        with pytest.raises(ForbiddenError) as exc:
            require(DINER, Requirement.ADMIN, message="unable to add menu item")
        assert exc.value.status_code == 403
        assert exc.value.message == "unable to add menu item"

        require(ADMIN, Requirement.ADMIN)


class TestAdministers:

    def test_admin_manages_any_franchise(self):
        assert administers(ADMIN, [])
        assert administers(ADMIN, {99})

    def test_bound_admin_ids_decide(self):
        assert administers(DINER, {2, 5})
        assert not administers(DINER, {5})

    def test_token_role_alone_is_not_enough(self):
        assert not administers(FRANCHISEE, set())
