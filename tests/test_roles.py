from tripdesk.roles import Permission, Role, has_permission, permissions_for


def test_permissions_are_the_union_of_roles():
    perms = permissions_for(["support_staff", "finance_manager"])

    assert Permission.view_leads in perms
    assert Permission.verify_payments in perms
    assert Permission.manage_trips not in perms


def test_admin_has_everything_but_force_delete():
    assert has_permission([Role.admin], Permission.manage_roles)
    assert not has_permission([Role.admin], Permission.force_delete_booking)
    assert has_permission([Role.super_admin], Permission.force_delete_booking)


def test_unknown_roles_grant_nothing():
    assert permissions_for(["pirate", "user"]) == frozenset()


def test_wallet_management_belongs_to_finance():
    assert has_permission(["finance_manager"], "manage_wallets")
    assert not has_permission(["operations_manager"], "manage_wallets")
