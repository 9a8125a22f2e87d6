"""Tests for influencer records, tax-id checks and mobile redaction."""
import pytest

from marketing_ops.exceptions import AuthorizationDenied, ValidationFailed
from marketing_ops.services import AccessRequestService, InfluencerService, TaxIdCheckGate

PLACEHOLDER = '••••••••••'


class TestCreate:
    def test_fields_are_normalized(self, store, executive, influencer_data):
        influencer = InfluencerService(actor=executive, store=store).create(influencer_data)
        assert influencer['tax_id'] == 'ABCDE1234F'
        assert influencer['language'] == 'English, Hindi'
        assert influencer['handle'] == '@asha.codes'
        assert influencer['platforms'] == {'instagram': {'username': 'asha.codes', 'channel': ''}}
        assert influencer['created_by'] == executive.email
        assert influencer['last_promo_by'] == 'Marketing'
        assert influencer['avatar'].startswith('https://ui-avatars.com/api/?name=Asha+Rao')

    def test_mobile_is_stored_in_e164(self, store, manager, influencer_data):
        influencer = InfluencerService(actor=manager, store=store).create(influencer_data)
        assert influencer['mobile'] == '+919876543210'
        assert influencer['mobile_visible'] is True

    def test_required_fields(self, store, executive):
        with pytest.raises(ValidationFailed) as exc_info:
            InfluencerService(actor=executive, store=store).create({'name': 'Nobody'})
        errors = exc_info.value.errors
        assert {'email', 'mobile', 'tax_id', 'category', 'influencer_type', 'languages', 'platforms'} <= set(errors)

    def test_invalid_mobile(self, store, executive, influencer_data):
        with pytest.raises(ValidationFailed) as exc_info:
            InfluencerService(actor=executive, store=store).create({**influencer_data, 'mobile': '12345'})
        assert 'mobile' in exc_info.value.errors

    def test_invalid_tax_id_format(self, store, executive, influencer_data):
        with pytest.raises(ValidationFailed) as exc_info:
            InfluencerService(actor=executive, store=store).create({**influencer_data, 'tax_id': 'ABC123'})
        assert exc_info.value.errors['tax_id'] == ['Invalid PAN format (e.g., ABCDE1234F).']

    def test_too_many_platforms(self, store, executive, influencer_data):
        platforms = [
            {'platform': 'instagram', 'username': 'a'},
            {'platform': 'youtube', 'username': 'b'},
            {'platform': 'x', 'username': 'c'},
        ]
        with pytest.raises(ValidationFailed):
            InfluencerService(actor=executive, store=store).create({**influencer_data, 'platforms': platforms})

    def test_existing_influencer_keeps_given_promotion(self, store, executive, sales, influencer_data):
        influencer = InfluencerService(actor=executive, store=store).create(
            {
                **influencer_data,
                'influencer_status': 'existing',
                'last_promo_by': 'Sales',
                'last_promo_date': '2023-11-05',
                'last_price_paid': 15000,
            }
        )
        assert influencer['last_promo_by'] == 'Sales'
        assert influencer['last_price_paid'] == 15000


class TestTaxIdUniqueness:
    def test_duplicate_is_rejected_case_insensitively(self, store, executive, other_executive, influencer_data):
        InfluencerService(actor=executive, store=store).create(influencer_data)
        with pytest.raises(ValidationFailed) as exc_info:
            InfluencerService(actor=other_executive, store=store).create(
                {**influencer_data, 'tax_id': 'ABCDE1234F', 'email': 'other@example.com'}
            )
        assert exc_info.value.errors['tax_id'] == ['Influencer already registered with this PAN']

    def test_editing_with_own_tax_id_is_allowed(self, store, executive, influencer_data):
        service = InfluencerService(actor=executive, store=store)
        influencer = service.create(influencer_data)
        updated = service.update(influencer['id'], {'tax_id': 'abcde1234f', 'location': 'Pune'})
        assert updated['location'] == 'Pune'
        assert updated['tax_id'] == 'ABCDE1234F'

    def test_editing_to_another_influencers_tax_id_fails(self, store, executive, influencer_data):
        service = InfluencerService(actor=executive, store=store)
        service.create(influencer_data)
        second = service.create({**influencer_data, 'tax_id': 'ZZZZZ9999Z', 'name': 'Ravi'})
        with pytest.raises(ValidationFailed):
            service.update(second['id'], {'tax_id': 'ABCDE1234F'})

    def test_check_reports_existence(self, store, executive, influencer_data):
        service = InfluencerService(actor=executive, store=store)
        influencer = service.create(influencer_data)
        result = service.check_tax_id('abcde1234f')
        assert result['exists'] is True
        assert result['valid_format'] is True
        assert result['stale'] is False
        assert service.check_tax_id('ABCDE1234F', exclude_id=influencer['id'])['exists'] is False
        assert service.check_tax_id('bad')['valid_format'] is False

    def test_superseded_check_is_stale(self, store, executive, influencer_data, monkeypatch):
        service = InfluencerService(actor=executive, store=store)
        original = InfluencerService._tax_id_taken

        def newer_check_starts(self, tax_id, exclude_id=None):
            TaxIdCheckGate().begin(executive.id)
            return original(self, tax_id, exclude_id)

        monkeypatch.setattr(InfluencerService, '_tax_id_taken', newer_check_starts)
        result = service.check_tax_id('ABCDE1234F')
        assert result['stale'] is True

    def test_tickets_increase_per_actor(self, store, executive, manager):
        gate = TaxIdCheckGate()
        first = gate.begin(executive.id)
        second = gate.begin(executive.id)
        assert second == first + 1
        assert gate.is_latest(executive.id, second)
        assert not gate.is_latest(executive.id, first)
        assert gate.begin(manager.id) == 1


class TestMobileRedaction:
    @pytest.fixture
    def influencer(self, store, manager, influencer_data):
        return InfluencerService(actor=manager, store=store).create(influencer_data)

    def test_executive_without_request_sees_placeholder(self, store, executive, influencer):
        seen = InfluencerService(actor=executive, store=store).get(influencer['id'])
        assert seen['mobile'] == PLACEHOLDER
        assert seen['mobile_visible'] is False
        assert seen['access_status'] is None

    def test_pending_and_rejected_requests_keep_it_hidden(self, store, executive, manager, influencer):
        request = AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        service = InfluencerService(actor=executive, store=store)
        assert service.get(influencer['id'])['mobile'] == PLACEHOLDER
        AccessRequestService(actor=manager, store=store).reject(request['id'])
        listed = service.list()
        assert listed[0]['mobile'] == PLACEHOLDER
        assert listed[0]['access_status'] == 'rejected'

    def test_approved_then_revoked(self, store, executive, manager, influencer):
        request = AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        resolver = AccessRequestService(actor=manager, store=store)
        resolver.approve(request['id'])
        service = InfluencerService(actor=executive, store=store)
        assert service.get(influencer['id'])['mobile'] == '+919876543210'
        resolver.revoke(request['id'])
        assert service.get(influencer['id'])['mobile'] == PLACEHOLDER

    def test_approval_is_per_executive(self, store, executive, other_executive, manager, influencer):
        request = AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        AccessRequestService(actor=manager, store=store).approve(request['id'])
        seen = InfluencerService(actor=other_executive, store=store).get(influencer['id'])
        assert seen['mobile'] == PLACEHOLDER


class TestOwnership:
    def test_only_creator_or_admin_edits(self, store, executive, other_executive, admin, influencer_data):
        influencer = InfluencerService(actor=executive, store=store).create(influencer_data)
        with pytest.raises(AuthorizationDenied):
            InfluencerService(actor=other_executive, store=store).update(influencer['id'], {'location': 'Goa'})
        updated = InfluencerService(actor=admin, store=store).update(influencer['id'], {'location': 'Goa'})
        assert updated['location'] == 'Goa'
        assert updated['created_by'] == executive.email

    def test_delete_removes_access_requests(self, store, executive, influencer_data):
        service = InfluencerService(actor=executive, store=store)
        influencer = service.create(influencer_data)
        AccessRequestService(actor=executive, store=store).request_access(influencer['id'])
        service.delete(influencer['id'])
        assert store.list('access_request') == []
        assert service.list() == []

    def test_list_filters(self, store, executive, influencer_data):
        service = InfluencerService(actor=executive, store=store)
        service.create(influencer_data)
        service.create({**influencer_data, 'name': 'Ravi', 'tax_id': 'ZZZZZ9999Z', 'languages': ['Tamil'],
                        'category': 'Food'})
        assert [i['name'] for i in service.list(language='tamil')] == ['Ravi']
        assert [i['name'] for i in service.list(category='tech')] == ['Asha Rao']
        assert len(service.list(mine=True)) == 2
