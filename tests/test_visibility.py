"""Unit tests for the visibility resolver."""

import pytest

from gateway.exceptions import NotFoundError
from gateway.identity import ANONYMOUS, User
from gateway.visibility import (
    VisibilityRule,
    ensure_visible,
    is_private_view,
    is_public,
    resolve_list_visibility,
)

BOB = User(id='bob@example.com', alias='bob')
ALICE = User(id='alice@example.com', alias='alice')
NO_ALIAS = User(id='carol@example.com')
ADMIN = User(id='root@example.com', alias='root', is_admin=True)


class TestListVisibility:

    @pytest.mark.parametrize('owner, pub', [
        (None, None), ('bob', None), ('bob', False), (None, False), (None, True),
    ])
    def test_anonymous_is_always_public_only(self, owner, pub):
        visibility = resolve_list_visibility(ANONYMOUS, owner=owner, pub=pub)

        assert visibility.public_only is True
        assert visibility.owner_filter == owner
        assert visibility.rule == VisibilityRule.ANONYMOUS

    def test_admin_owner_and_private(self):
        visibility = resolve_list_visibility(ADMIN, owner='bob', pub=False)

        assert visibility.owner_filter == 'bob'
        assert visibility.public_only is False
        assert visibility.rule == VisibilityRule.ADMIN

    def test_admin_without_filters(self):
        visibility = resolve_list_visibility(ADMIN)

        assert visibility.owner_filter is None
        assert visibility.public_only is None

    @pytest.mark.parametrize('owner', ['bob', 'bob@example.com'])
    def test_self_by_alias_or_id(self, owner):
        visibility = resolve_list_visibility(BOB, owner=owner, pub=False)

        assert visibility.owner_filter == owner
        assert visibility.public_only is False
        assert visibility.rule == VisibilityRule.SELF

    def test_implicit_self_without_alias(self):
        visibility = resolve_list_visibility(NO_ALIAS)

        assert visibility.owner_filter == 'carol@example.com'
        assert visibility.public_only is None
        assert visibility.rule == VisibilityRule.IMPLICIT_SELF

    def test_foreign_owner_forced_public(self):
        visibility = resolve_list_visibility(ALICE, owner='bob', pub=False)

        assert visibility.owner_filter == 'bob'
        assert visibility.public_only is True
        assert visibility.rule == VisibilityRule.FOREIGN

    def test_alias_holder_without_owner_sees_own_public_records(self):
        visibility = resolve_list_visibility(ALICE)

        assert visibility.owner_filter == 'alice'
        assert visibility.public_only is True
        assert visibility.rule == VisibilityRule.FOREIGN


class TestSingleRecord:

    def test_public_flag_forms(self):
        assert is_public({'public': True})
        assert is_public({'public': '1'})
        assert not is_public({'public': '0'})
        assert not is_public({})

    def test_private_view_requires_owner_id(self):
        assert is_private_view(BOB, 'bob@example.com')
        assert not is_private_view(BOB, 'bob')
        assert not is_private_view(ANONYMOUS, 'bob@example.com')
        assert not is_private_view(BOB, None)

    def test_owner_sees_private_record(self):
        record = {'owner': 'bob@example.com', 'public': False}

        assert ensure_visible(BOB, record) is True

    def test_other_user_gets_not_found(self):
        record = {'owner': 'bob@example.com', 'public': False}

        with pytest.raises(NotFoundError):
            ensure_visible(ALICE, record)

    def test_anonymous_gets_not_found_for_private(self):
        with pytest.raises(NotFoundError):
            ensure_visible(ANONYMOUS, {'owner': 'bob@example.com', 'public': '0'})

    def test_public_record_visible_to_everyone(self):
        record = {'owner': 'bob@example.com', 'public': True}

        assert ensure_visible(ANONYMOUS, record) is False
        assert ensure_visible(ALICE, record) is False

    def test_owner_reported_beside_record(self):
        assert ensure_visible(BOB, {'public': False}, 'bob@example.com') is True
