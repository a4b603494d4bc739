"""
Tests for boost endpoints.
"""

import pytest
from datetime import timedelta

from bizdirectory import db
from bizdirectory.models import Business

from conftest import T0


@pytest.fixture
def competitors(owner, second_owner, make_business):
    """Two restaurants with different owners."""
    mine = make_business(owner, name='Alpha Diner')
    theirs = make_business(second_owner, name='Bravo Bistro')
    return {'mine': mine.id, 'theirs': theirs.id}


class TestRequestBoost:
    """Tests for POST /api/boosts"""

    def test_boost_activates(self, client, clock, auth_headers, competitors):
        response = client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['active'] is True
        assert data['queued'] is False
        assert data['boost_start_at'] == T0.isoformat()
        assert data['boost_end_at'] == (T0 + timedelta(hours=24)).isoformat()
        assert data['message'] == 'Business is now boosted for 24 hours.'

    def test_boost_is_queued_when_slot_taken(self, client, clock, auth_headers, second_auth_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)
        clock.advance(hours=1)

        response = client.post('/api/boosts', json={'business_id': competitors['theirs']}, headers=second_auth_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['active'] is False
        assert data['queued'] is True
        assert data['boost_start_at'] == (T0 + timedelta(hours=24)).isoformat()
        assert data['queue_position'] == 0

    def test_boost_requires_token(self, client, clock, competitors):
        response = client.post('/api/boosts', json={'business_id': competitors['mine']})

        assert response.status_code == 401

    def test_boost_invalid_token(self, client, clock, competitors):
        response = client.post(
            '/api/boosts',
            json={'business_id': competitors['mine']},
            headers={'Authorization': 'Bearer not-a-token'}
        )

        assert response.status_code == 401

    def test_boost_other_owners_business(self, client, clock, second_auth_headers, competitors):
        response = client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=second_auth_headers)

        assert response.status_code == 403

    def test_boost_missing_business_id(self, client, clock, auth_headers, competitors):
        response = client.post('/api/boosts', json={}, headers=auth_headers)

        assert response.status_code == 400

    def test_boost_unknown_business(self, client, clock, auth_headers, competitors):
        response = client.post('/api/boosts', json={'business_id': 99999}, headers=auth_headers)

        assert response.status_code == 404

    def test_boost_twice_is_rejected(self, client, clock, auth_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)

        response = client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Business is already boosted'

    def test_admin_can_boost_any_business(self, client, clock, admin_headers, competitors):
        response = client.post('/api/boosts', json={'business_id': competitors['theirs']}, headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()['active'] is True


class TestClaimBoost:
    """Tests for POST /api/boosts/claim"""

    def test_claim_too_early(self, client, clock, auth_headers, second_auth_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)
        clock.advance(hours=1)
        client.post('/api/boosts', json={'business_id': competitors['theirs']}, headers=second_auth_headers)
        clock.advance(hours=19)

        response = client.post('/api/boosts/claim', json={'business_id': competitors['theirs']}, headers=second_auth_headers)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Boost period has not started yet.'

    def test_claim_when_window_open(self, client, clock, auth_headers, second_auth_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)
        clock.advance(hours=1)
        client.post('/api/boosts', json={'business_id': competitors['theirs']}, headers=second_auth_headers)
        clock.set(T0 + timedelta(hours=24))

        response = client.post('/api/boosts/claim', json={'business_id': competitors['theirs']}, headers=second_auth_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['active'] is True
        assert data['boost_start_at'] == (T0 + timedelta(hours=24)).isoformat()
        assert data['boost_end_at'] == (T0 + timedelta(hours=48)).isoformat()

    def test_claim_after_window_ended(self, client, clock, auth_headers, second_auth_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)
        client.post('/api/boosts', json={'business_id': competitors['theirs']}, headers=second_auth_headers)
        clock.advance(hours=60)

        response = client.post('/api/boosts/claim', json={'business_id': competitors['theirs']}, headers=second_auth_headers)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'Boost period has already ended.'
        status = client.get(f"/api/boosts/{competitors['theirs']}").get_json()
        assert status['active'] is False
        assert status['queue'] == []

    def test_claim_nothing_queued(self, client, clock, auth_headers, competitors):
        response = client.post('/api/boosts/claim', json={'business_id': competitors['mine']}, headers=auth_headers)

        assert response.status_code == 400
        assert response.get_json()['error'] == 'No boost queued.'


class TestBoostQueries:
    """Tests for boost status, position and active list"""

    def test_status(self, client, clock, auth_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)
        clock.advance(hours=4)

        response = client.get(f"/api/boosts/{competitors['mine']}")

        assert response.status_code == 200
        data = response.get_json()
        assert data['active'] is True
        assert data['category'] == 'restaurants'
        assert data['time_remaining_seconds'] == 20 * 3600
        assert data['queue'] == []

    def test_status_after_window_without_sweep(self, client, clock, auth_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)
        clock.advance(hours=30)

        response = client.get(f"/api/boosts/{competitors['mine']}")

        assert response.get_json()['active'] is False

    def test_status_not_found(self, client, clock, db_session):
        response = client.get('/api/boosts/99999')

        assert response.status_code == 404
        assert response.get_json()['error'] == 'Business not found'

    def test_position(self, client, clock, auth_headers, second_auth_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)
        client.post('/api/boosts', json={'business_id': competitors['theirs']}, headers=second_auth_headers)

        queued = client.get(f"/api/boosts/{competitors['theirs']}/position").get_json()
        idle = client.get(f"/api/boosts/{competitors['mine']}/position").get_json()

        assert queued == {'business_id': competitors['theirs'], 'queued': True, 'position': 0}
        assert idle == {'business_id': competitors['mine'], 'queued': False, 'position': None}

    def test_active_list(self, client, clock, auth_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)

        response = client.get('/api/boosts/active')

        assert response.status_code == 200
        data = response.get_json()
        assert data['total'] == 1
        assert data['boosts'][0]['business_id'] == competitors['mine']
        assert data['boosts'][0]['boost_end_at'] == (T0 + timedelta(hours=24)).isoformat()

    def test_stats_admin_only(self, client, clock, auth_headers, admin_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)

        forbidden = client.get('/api/boosts/stats', headers=auth_headers)
        allowed = client.get('/api/boosts/stats', headers=admin_headers)

        assert forbidden.status_code == 403
        assert allowed.status_code == 200
        assert allowed.get_json()['total_active'] == 1


class TestQueueViews:
    """Tests for GET /api/boosts/category/<category> and /api/boosts/queues"""

    def test_category_queue(self, client, clock, auth_headers, second_auth_headers, admin_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)
        client.post('/api/boosts', json={'business_id': competitors['theirs']}, headers=second_auth_headers)

        response = client.get('/api/boosts/category/restaurants', headers=admin_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['currently_active']['business_id'] == competitors['mine']
        assert [e['business_id'] for e in data['queue']] == [competitors['theirs']]
        assert data['queue'][0]['business_name'] == 'Bravo Bistro'
        assert data['total_pending'] == 1

    def test_category_queue_accepts_alias(self, client, clock, admin_headers):
        response = client.get('/api/boosts/category/Coffee', headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()['category'] == 'cafes'

    def test_category_queue_invalid_category(self, client, clock, admin_headers):
        response = client.get('/api/boosts/category/spaceports', headers=admin_headers)

        assert response.status_code == 400

    def test_category_queue_admin_only(self, client, clock, auth_headers):
        response = client.get('/api/boosts/category/restaurants', headers=auth_headers)

        assert response.status_code == 403

    def test_all_queues(self, client, clock, auth_headers, admin_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)

        forbidden = client.get('/api/boosts/queues', headers=auth_headers)
        allowed = client.get('/api/boosts/queues', headers=admin_headers)

        assert forbidden.status_code == 403
        data = allowed.get_json()
        assert data['total'] == 1
        assert data['queues'][0]['category'] == 'restaurants'


class TestSweepEndpoint:
    """Tests for POST /api/boosts/sweep"""

    def test_sweep_with_cron_secret(self, client, clock, auth_headers, second_auth_headers, cron_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)
        client.post('/api/boosts', json={'business_id': competitors['theirs']}, headers=second_auth_headers)
        clock.advance(hours=25)

        response = client.post('/api/boosts/sweep', headers=cron_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['processed_categories'] == 1
        actions = data['per_category_actions'][0]['actions']
        assert [a['action'] for a in actions] == ['expired', 'activated']

        active = client.get('/api/boosts/active').get_json()
        assert [b['business_id'] for b in active['boosts']] == [competitors['theirs']]

    def test_sweep_with_admin_token(self, client, clock, admin_headers):
        response = client.post('/api/boosts/sweep', headers=admin_headers)

        assert response.status_code == 200
        assert response.get_json()['processed_categories'] == 0

    def test_sweep_rejects_wrong_secret(self, client, clock, db_session):
        response = client.post('/api/boosts/sweep', headers={'X-Cron-Secret': 'guess'})

        assert response.status_code == 401

    def test_sweep_rejects_non_admin(self, client, clock, auth_headers):
        response = client.post('/api/boosts/sweep', headers=auth_headers)

        assert response.status_code == 403


class TestClearAndCancel:
    """Tests for DELETE /api/boosts/<id> and /api/boosts/<id>/queue"""

    def test_clear_boost(self, client, clock, auth_headers, second_auth_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)

        response = client.delete(f"/api/boosts/{competitors['mine']}", headers=auth_headers)

        assert response.status_code == 200
        status = client.get(f"/api/boosts/{competitors['mine']}").get_json()
        assert status['active'] is False
        assert status['boost_end_at'] is None

        # Slot is free again
        response = client.post('/api/boosts', json={'business_id': competitors['theirs']}, headers=second_auth_headers)
        assert response.get_json()['active'] is True

    def test_clear_other_owners_boost(self, client, clock, second_auth_headers, competitors):
        response = client.delete(f"/api/boosts/{competitors['mine']}", headers=second_auth_headers)

        assert response.status_code == 403

    def test_cancel_queue(self, client, clock, auth_headers, second_auth_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)
        client.post('/api/boosts', json={'business_id': competitors['theirs']}, headers=second_auth_headers)

        response = client.delete(f"/api/boosts/{competitors['theirs']}/queue", headers=second_auth_headers)

        assert response.status_code == 200
        assert response.get_json()['removed_requests'] == 1
        position = client.get(f"/api/boosts/{competitors['theirs']}/position").get_json()
        assert position['queued'] is False

    def test_cancel_empty_queue(self, client, clock, auth_headers, competitors):
        response = client.delete(f"/api/boosts/{competitors['mine']}/queue", headers=auth_headers)

        assert response.status_code == 400

    def test_admin_can_cancel(self, client, clock, auth_headers, second_auth_headers, admin_headers, competitors):
        client.post('/api/boosts', json={'business_id': competitors['mine']}, headers=auth_headers)
        client.post('/api/boosts', json={'business_id': competitors['theirs']}, headers=second_auth_headers)

        response = client.delete(f"/api/boosts/{competitors['theirs']}/queue", headers=admin_headers)

        assert response.status_code == 200
        db.session.expire_all()
        assert db.session.get(Business, competitors['theirs']).boost_queue == []
