import unittest

from slot_be.app import create_app
from slot_be.config import TestingConfig
from slot_be.error_codes import ErrorCodes
from slot_be.utils.game_config_manager import GameConfig

SIMPLE_TABLES = {
    "weights": {"A": 10, "B": 10},
    "paytable": {"A": {"3": 5, "4": 20, "5": 100}},
    "paylines": [[0, 0, 0, 0, 0]],
    "visible_rows": 1,
}


class BaseTestCase(unittest.TestCase):

    def setUp(self):
        self.app = create_app(TestingConfig)
        self.client = self.app.test_client()
        self.manager = self.app.session_manager

    def _create_session(self, **payload):
        response = self.client.post('/api/slots/sessions', json=payload)
        self.assertEqual(response.status_code, 201, response.get_json())
        return response.get_json()['session']


class TestConfigRoutes(BaseTestCase):

    def test_get_default_config(self):
        response = self.client.get('/api/config')
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertTrue(data['status'])
        self.assertEqual(data['config']['weights']['cherry'], 30)
        self.assertEqual(len(data['config']['paylines']), 5)
        self.assertGreater(data['theoretical_rtp'], 0)

    def test_compute_rtp(self):
        response = self.client.post('/api/config/rtp', json=SIMPLE_TABLES)
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertAlmostEqual(data['rtp'], 4.0625)
        self.assertEqual(len(data['report']['tiers']), 3)

    def test_compute_rtp_rejects_ragged_paylines(self):
        payload = dict(SIMPLE_TABLES, paylines=[[0, 0, 0, 0, 0], [0, 0]])
        response = self.client.post('/api/config/rtp', json=payload)
        self.assertEqual(response.status_code, 422)
        data = response.get_json()
        self.assertEqual(data['error_code'], ErrorCodes.VALIDATION_ERROR)
        self.assertIn('paylines', data['details']['errors'])

    def test_compute_rtp_requires_json(self):
        response = self.client.post('/api/config/rtp', data="not json", content_type='text/plain')
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()['error_code'], ErrorCodes.VALIDATION_ERROR)

    def test_adjust_paytable(self):
        payload = dict(SIMPLE_TABLES, target_rtp=1.0)
        response = self.client.post('/api/config/adjust', json=payload)
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['paytable'], {"A": {"3": 1, "4": 5, "5": 25}})
        self.assertAlmostEqual(data['rtp_before'], 4.0625)
        self.assertAlmostEqual(data['rtp_after'], 1.0)

    def test_adjust_requires_target(self):
        response = self.client.post('/api/config/adjust', json=SIMPLE_TABLES)
        self.assertEqual(response.status_code, 422)
        self.assertIn('target_rtp', response.get_json()['details']['errors'])


class TestSessionRoutes(BaseTestCase):

    def test_create_session_defaults(self):
        session = self._create_session()
        self.assertEqual(session['credit'], 100)
        self.assertEqual(session['bet'], 5)
        self.assertEqual(session['state'], 'idle')
        self.assertEqual(session['config_version'], 1)

    def test_create_session_with_values(self):
        session = self._create_session(credit=20, bet=2)
        self.assertEqual((session['credit'], session['bet']), (20, 2))

    def test_create_session_rejects_bad_bet(self):
        response = self.client.post('/api/slots/sessions', json={'bet': 0})
        self.assertEqual(response.status_code, 422)

    def test_get_and_delete_session(self):
        session = self._create_session()
        response = self.client.get(f"/api/slots/sessions/{session['session_id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['session']['session_id'], session['session_id'])

        response = self.client.delete(f"/api/slots/sessions/{session['session_id']}")
        self.assertEqual(response.status_code, 200)

        response = self.client.get(f"/api/slots/sessions/{session['session_id']}")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.get_json()['error_code'], ErrorCodes.SESSION_NOT_FOUND)

    def test_set_bet(self):
        session = self._create_session(credit=30)
        response = self.client.post(f"/api/slots/sessions/{session['session_id']}/bet", json={'bet': 100})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['session']['bet'], 30)

    def test_set_bet_requires_value(self):
        session = self._create_session()
        response = self.client.post(f"/api/slots/sessions/{session['session_id']}/bet", json={})
        self.assertEqual(response.status_code, 422)

    def test_add_credit(self):
        session = self._create_session()
        response = self.client.post(f"/api/slots/sessions/{session['session_id']}/credit")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['session']['credit'], 150)

        response = self.client.post(f"/api/slots/sessions/{session['session_id']}/credit", json={'amount': 7})
        self.assertEqual(response.get_json()['session']['credit'], 157)

    def test_spin(self):
        session = self._create_session()
        response = self.client.post(f"/api/slots/sessions/{session['session_id']}/spin")
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        result = data['result']
        self.assertEqual(len(result['grid']), 5)
        self.assertEqual(len(result['grid'][0]), 3)
        self.assertEqual(data['session']['credit'], 100 - 5 + result['total_win'])
        self.assertEqual(data['session']['state'], 'idle')
        self.assertEqual(data['session']['spins'], 1)

        response = self.client.get(f"/api/slots/sessions/{session['session_id']}")
        self.assertEqual(response.get_json()['grid'], result['grid'])

    def test_spin_with_insufficient_funds(self):
        session = self._create_session(credit=0)
        response = self.client.post(f"/api/slots/sessions/{session['session_id']}/spin")
        self.assertEqual(response.status_code, 400)
        data = response.get_json()
        self.assertEqual(data['error_code'], ErrorCodes.INSUFFICIENT_FUNDS)
        self.assertEqual(data['action_button']['actionType'], 'ADD_CREDIT')
        self.assertEqual(self.manager.get_session(session['session_id']).credit, 0)

    def test_spin_invariant_violation_reports_partial_win(self):
        config = GameConfig(
            weights={"A": 1},
            paytable={"A": {3: 5, 4: 20, 5: 100}},
            paylines=[[0, 0, 0, 0, 0]],
            visible_rows=1,
            near_miss_frequency=0.0,
            drift_probability=0.0,
            max_cascade_iterations=2,
        )
        session = self.manager.create_session(credit=100, bet=5, config=config)
        response = self.client.post(f"/api/slots/sessions/{session.session_id}/spin")
        self.assertEqual(response.status_code, 500)
        data = response.get_json()
        self.assertEqual(data['error_code'], ErrorCodes.INTERNAL_INVARIANT_VIOLATION)
        self.assertEqual(data['details']['accumulated'], 1000)
        self.assertTrue(data['details']['result']['aborted'])
        self.assertEqual(session.credit, 100 - 5 + 1000)

    def test_rtp_target(self):
        session = self._create_session()
        response = self.client.post(
            f"/api/slots/sessions/{session['session_id']}/rtp-target",
            json={'rtp_target': 0.9, 'volatility': 9, 'preserve_factor': None}
        )
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['session']['rtp_target'], 0.9)
        self.assertEqual(data['session']['volatility'], 2.0)
        self.assertEqual(data['session']['config_version'], 2)
        self.assertEqual(set(data['paytable']), {'cherry', 'lemon', 'orange', 'star', 'bell', 'diamond'})

    def test_rtp_target_without_volatility_keeps_it(self):
        session = self._create_session()
        url = f"/api/slots/sessions/{session['session_id']}/rtp-target"
        self.client.post(url, json={'rtp_target': 0.9, 'volatility': 1.5})
        response = self.client.post(url, json={'rtp_target': 0.8})
        self.assertEqual(response.status_code, 200)
        data = response.get_json()
        self.assertEqual(data['session']['volatility'], 1.5)
        self.assertEqual(data['session']['rtp_target'], 0.8)
        self.assertEqual(data['session']['config_version'], 3)

    def test_unknown_route_and_method(self):
        self.assertEqual(self.client.get('/api/nothing-here').status_code, 404)
        response = self.client.get('/api/slots/sessions/abc/spin')
        self.assertEqual(response.status_code, 405)
        self.assertEqual(response.get_json()['error_code'], ErrorCodes.METHOD_NOT_ALLOWED)

    def test_health(self):
        self._create_session()
        response = self.client.get('/health')
        self.assertEqual(response.get_json(), {'status': True, 'sessions': 1})


if __name__ == '__main__':
    unittest.main()
