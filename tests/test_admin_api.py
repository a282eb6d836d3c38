import csv
import io

import store
from tests.base import ApiTestCase


class AdminAuthTest(ApiTestCase):
    def test_requires_admin(self):
        r = self.client.get('/api/admin/categories')
        self.assertEqual(r.status_code, 401)

        self.login_judge()
        r = self.client.get('/api/admin/categories')
        self.assertEqual(r.status_code, 403)

    def test_default_admin_login(self):
        r = self.client.post('/api/auth/admin/login', json={'username': 'admin', 'password': 'admin123'})
        self.assertEqual(r.status_code, 200)
        self.assertNotIn('password', r.get_json()['user'])

        r = self.client.post('/api/auth/admin/login', json={'username': 'admin'})
        self.assertEqual(r.status_code, 400)


class AdminCrudTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.login_admin()

    def test_categories(self):
        r = self.client.post('/api/admin/categories', json={'name': 'Dance'})
        self.assertEqual(r.status_code, 201)
        category_id = r.get_json()['id']

        r = self.client.post('/api/admin/categories', json={'name': 'dance'})
        self.assertEqual(r.status_code, 400)

        r = self.client.put(f'/api/admin/categories/{category_id}', json={'description': 'Moves'})
        self.assertEqual(r.get_json()['description'], 'Moves')

        r = self.client.delete(f'/api/admin/categories/{category_id}')
        self.assertEqual(r.status_code, 200)
        self.assertIsNone(store.find_by_id(store.read('categories')['list'], category_id))

    def test_category_with_contestants_cannot_be_deleted(self):
        r = self.client.delete('/api/admin/categories/cat_band')
        self.assertEqual(r.status_code, 400)
        self.assertIsNotNone(store.find_by_id(store.read('categories')['list'], 'cat_band'))

    def test_contestants(self):
        r = self.client.post('/api/admin/contestants', json={'name': 'Echo', 'categoryId': 'missing'})
        self.assertEqual(r.status_code, 404)

        r = self.client.post('/api/admin/contestants', json={'name': 'Echo', 'categoryId': 'cat_solo'})
        self.assertEqual(r.status_code, 201)
        contestant_id = r.get_json()['id']

        r = self.client.put(f'/api/admin/contestants/{contestant_id}', json={'company': 'Ops'})
        self.assertEqual(r.get_json()['company'], 'Ops')

        r = self.client.delete(f'/api/admin/contestants/{contestant_id}')
        self.assertEqual(r.status_code, 200)
        self.assertEqual(len(store.read('contestants')['list']), 4)

    def test_judge_gets_generated_password(self):
        r = self.client.post('/api/admin/judges', json={'name': 'New Judge', 'username': 'judge3'})
        self.assertEqual(r.status_code, 201)
        body = r.get_json()
        self.assertEqual(len(body['generatedPassword']), 8)
        self.assertNotIn('password', body)

        r = self.client.post('/api/admin/judges', json={'name': 'Copy', 'username': 'judge3'})
        self.assertEqual(r.status_code, 400)

        listed = self.client.get('/api/admin/judges').get_json()['list']
        self.assertTrue(all('password' not in j for j in listed))

        self.logout()
        self.login_judge('judge3', body['generatedPassword'])

    def test_reset_judge_password(self):
        r = self.client.post('/api/admin/judges/j1/reset-password')
        password = r.get_json()['generatedPassword']
        self.logout()

        r = self.client.post('/api/auth/judge/login', json={'username': 'judge1', 'password': 'secret1'})
        self.assertEqual(r.status_code, 401)
        self.login_judge('judge1', password)

    def test_audience_members(self):
        r = self.client.post('/api/admin/audience', json={'firstName': 'Cy', 'email': 'not-an-email'})
        self.assertEqual(r.status_code, 400)
        r = self.client.post('/api/admin/audience', json={'firstName': 'Cy', 'email': 'ANN@example.com'})
        self.assertEqual(r.status_code, 400)

        r = self.client.post('/api/admin/audience', json={'firstName': 'Cy', 'email': 'cy@example.com'})
        self.assertEqual(r.status_code, 201)
        member_id = r.get_json()['id']
        self.assertNotIn('loginCode', r.get_json())

        code = self.client.get(f'/api/admin/audience/{member_id}/login-code').get_json()['loginCode']
        self.assertEqual(len(code), 6)
        self.logout()
        self.login_audience(code.lower())

    def test_admins(self):
        r = self.client.post('/api/admin/admins', json={'username': 'boss', 'email': 'boss@example.com'})
        self.assertEqual(r.status_code, 201)
        r = self.client.post('/api/admin/admins', json={'username': 'boss', 'email': 'other@example.com'})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(len(self.client.get('/api/admin/admins').get_json()['list']), 2)

    def test_criteria(self):
        r = self.client.post('/api/admin/judging-criteria/cat_solo',
                             json={'name': 'Pitch', 'weight': 100, 'maxScore': 10})
        self.assertEqual(r.status_code, 201)
        criterion_id = r.get_json()['id']

        r = self.client.post('/api/admin/judging-criteria/cat_solo',
                             json={'name': 'Bad', 'weight': 'heavy', 'maxScore': 10})
        self.assertEqual(r.status_code, 400)

        r = self.client.get('/api/admin/judging-criteria/cat_solo')
        self.assertEqual([c['id'] for c in r.get_json()['criteria']], [criterion_id])

        r = self.client.delete(f'/api/admin/judging-criteria/cat_solo/{criterion_id}')
        self.assertEqual(r.status_code, 200)

        r = self.client.put('/api/admin/judging-criteria/cat_solo', json={'criteria': [
            {'name': 'Pitch', 'weight': 50, 'maxScore': 10},
            {'name': 'Tone', 'weight': 50, 'maxScore': 5},
        ]})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(len(store.read('criteria')['categories']['cat_solo']), 2)

    def test_scored_criterion_cannot_be_deleted(self):
        scores = store.read_scores()
        scores['judgeScores']['c1'] = {'j1': {'criteriaScores': {'crit_a': 5}, 'totalScore': 3,
                                              'categoryId': 'cat_band'}}
        store.write_scores(scores)

        r = self.client.delete('/api/admin/judging-criteria/cat_band/crit_a')
        self.assertEqual(r.status_code, 400)


class AdminSettingsTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.login_admin()

    def test_score_weights_must_total_100(self):
        r = self.client.put('/api/admin/settings/score-weights', json={'judges': 60, 'audience': 30})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(store.read('settings')['scoreWeights'], {'judges': 70, 'audience': 30})

        r = self.client.put('/api/admin/settings/score-weights', json={'judges': 60, 'audience': 40})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(store.read('settings')['scoreWeights'], {'judges': 60, 'audience': 40})

    def test_general_settings(self):
        r = self.client.post('/api/admin/settings', json={'eventName': 'Show'})
        self.assertEqual(r.status_code, 400)

        r = self.client.post('/api/admin/settings', json={
            'eventName': 'Show', 'eventDescription': 'Annual',
            'scoreWeights': {'judges': 50, 'audience': 40}})
        self.assertEqual(r.status_code, 400)

        r = self.client.post('/api/admin/settings', json={
            'eventName': 'Show', 'eventDescription': 'Annual',
            'scoreWeights': {'judges': 50, 'audience': 50}})
        self.assertEqual(r.status_code, 200)
        settings = self.client.get('/api/admin/settings').get_json()
        self.assertEqual(settings['eventName'], 'Show')
        self.assertEqual(settings['results'], {'published': False, 'winners': {}})

    def test_toggle_voting(self):
        r = self.client.put('/api/admin/settings/voting', json={'votingOpen': 'yes'})
        self.assertEqual(r.status_code, 400)

        r = self.client.put('/api/admin/settings/voting', json={'votingOpen': True})
        self.assertEqual(r.status_code, 200)
        self.assertTrue(store.read('settings')['votingOpen'])


class AdminResultsTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.set_voting(True)
        # a1 and a2 vote for c2, a1 also for c3
        for code, contestant_ids in (('AAA111', ['c2', 'c3']), ('BBB222', ['c2'])):
            self.login_audience(code)
            for contestant_id in contestant_ids:
                self.client.post(f'/api/audience/contestants/{contestant_id}/vote')
            self.logout()

    def test_results(self):
        self.login_judge()
        self.client.post('/api/judge/contestants/c1/score',
                         json={'criteriaScores': {'crit_a': 8, 'crit_b': 5}})
        self.logout()

        self.login_admin()
        body = self.client.get('/api/admin/results?categoryId=cat_band').get_json()
        band = body['results']['cat_band']['results']
        by_id = {r['contestant']['id']: r for r in band}
        self.assertAlmostEqual(by_id['c1']['weightedJudgeScore'], 47.6)
        self.assertAlmostEqual(by_id['c2']['weightedAudienceScore'], 30)
        self.assertAlmostEqual(by_id['c3']['weightedAudienceScore'], 15)
        self.assertEqual([r['contestant']['id'] for r in band], ['c1', 'c2', 'c3'])
        self.assertEqual(body['activeJudges'], ['j1'])

        r = self.client.get('/api/admin/results?categoryId=missing')
        self.assertEqual(r.status_code, 404)

        body = self.client.get('/api/admin/results?categoryId=all').get_json()
        self.assertEqual(set(body['results']), {'cat_band', 'cat_solo'})

    def test_declare_publish_unpublish(self):
        self.login_admin()
        r = self.client.post('/api/admin/results/declare-winner',
                             json={'categoryId': 'cat_band', 'first': 'c3', 'second': 'c1'})
        self.assertEqual(r.status_code, 200)

        r = self.client.post('/api/admin/results/publish/cat_band')
        self.assertEqual(r.status_code, 200)
        self.logout()

        self.login_audience()
        view = self.client.get('/api/audience/results').get_json()
        self.assertTrue(view['published'])
        band = view['results']['cat_band']
        self.assertEqual(band['type'], 'declared')
        self.assertEqual(band['winnerIds'], {'first': 'c3', 'second': 'c1', 'third': None})
        self.assertNotIn('cat_solo', view['results'])
        self.logout()

        self.login_admin()
        self.client.post('/api/admin/results/unpublish')
        self.logout()

        self.login_audience()
        self.assertFalse(self.client.get('/api/audience/results').get_json()['published'])

    def test_publish_without_declared_winners(self):
        self.login_admin()
        self.client.post('/api/admin/results/publish/cat_band')
        self.logout()

        self.login_audience()
        band = self.client.get('/api/audience/results').get_json()['results']['cat_band']
        self.assertEqual(band['type'], 'calculated')
        self.assertEqual(band['winnerIds'], {'first': 'c2', 'second': 'c3', 'third': 'c1'})

    def test_declare_requires_category(self):
        self.login_admin()
        r = self.client.post('/api/admin/results/declare-winner', json={'first': 'c1'})
        self.assertEqual(r.status_code, 400)

    def test_clear_votes(self):
        self.login_admin()
        r = self.client.post('/api/admin/results/clear-votes')
        self.assertEqual(r.status_code, 200)
        scores = store.read_scores()
        self.assertEqual(scores['audienceVotes'], {})
        self.assertEqual(scores['userVotes'], {})

    def test_export(self):
        self.login_admin()
        body = self.client.get('/api/admin/results/export').get_json()
        self.assertIn('cat_band', body['results'])
        self.assertEqual(body['scores']['audienceVotes'], {'c2': 2, 'c3': 1})

        r = self.client.get('/api/admin/results/export?format=csv')
        self.assertEqual(r.mimetype, 'text/csv')
        rows = list(csv.reader(io.StringIO(r.get_data(as_text=True))))
        self.assertEqual(rows[0][0], 'Category')
        self.assertEqual(len(rows), 5)


class AdminInputValidationTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.login_admin()

    def put_raw(self, url, body):
        return self.client.put(url, data=body, content_type='application/json')

    def test_nan_score_weights_rejected(self):
        r = self.put_raw('/api/admin/settings/score-weights', '{"judges": NaN, "audience": 100}')
        self.assertEqual(r.status_code, 400)

        r = self.client.post('/api/admin/settings', data=(
            '{"eventName": "Show", "eventDescription": "Annual",'
            ' "scoreWeights": {"judges": Infinity, "audience": -Infinity}}'),
            content_type='application/json')
        self.assertEqual(r.status_code, 400)
        self.assertEqual(store.read('settings')['scoreWeights'], {'judges': 70, 'audience': 30})

    def test_infinite_max_score_rejected(self):
        r = self.client.post('/api/admin/judging-criteria/cat_solo',
                             data='{"name": "Pitch", "weight": 100, "maxScore": Infinity}',
                             content_type='application/json')
        self.assertEqual(r.status_code, 400)

        r = self.client.post('/api/admin/judging-criteria/cat_solo',
                             json={'name': 'Pitch', 'weight': 'nan', 'maxScore': 10})
        self.assertEqual(r.status_code, 400)
        self.assertNotIn('cat_solo', store.read('criteria')['categories'])

    def test_non_string_fields_rejected(self):
        r = self.client.post('/api/admin/categories', json={'name': 5})
        self.assertEqual(r.status_code, 400)
        self.assertEqual(r.get_json()['message'], 'name must be a string')

        r = self.client.post('/api/admin/contestants', json={'name': ['Echo'], 'categoryId': 'cat_solo'})
        self.assertEqual(r.status_code, 400)

        r = self.client.post('/api/admin/judges', json={'name': 'Judge', 'username': {'a': 1}})
        self.assertEqual(r.status_code, 400)

        r = self.client.post('/api/admin/audience', json={'firstName': 'Cy', 'email': 42})
        self.assertEqual(r.status_code, 400)

        r = self.client.post('/api/admin/settings', json={'eventName': 1, 'eventDescription': 'x'})
        self.assertEqual(r.status_code, 400)

    def test_non_string_credentials_rejected(self):
        self.logout()
        r = self.client.post('/api/auth/admin/login', json={'username': 'admin', 'password': 123})
        self.assertEqual(r.status_code, 400)
        r = self.client.post('/api/auth/judge/login', json={'username': 7, 'password': 'secret1'})
        self.assertEqual(r.status_code, 400)
        r = self.client.post('/api/auth/audience/login', json={'loginCode': 111})
        self.assertEqual(r.status_code, 400)

    def test_optional_fields_can_be_cleared(self):
        self.client.put('/api/admin/contestants/c1',
                        json={'description': 'Loud', 'image': 'http://img/c1.png'})
        r = self.client.put('/api/admin/contestants/c1', json={'description': '', 'image': None})
        self.assertEqual(r.status_code, 200)
        contestant = store.find_by_id(store.read('contestants')['list'], 'c1')
        self.assertEqual(contestant['description'], '')
        self.assertIsNone(contestant['image'])
        self.assertEqual(contestant['name'], 'Alpha')

        self.client.put('/api/admin/judges/j1', json={'description': 'Producer'})
        r = self.client.put('/api/admin/judges/j1', json={'description': ''})
        self.assertEqual(r.get_json()['description'], '')
        self.assertEqual(r.get_json()['username'], 'judge1')


class AdminAccountsTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.login_admin()
        r = self.client.post('/api/admin/admins', json={
            'username': 'deputy', 'email': 'deputy@example.com',
            'firstName': 'Dee', 'lastName': 'Puty'})
        self.deputy_id = r.get_json()['id']
        self.deputy_password = r.get_json()['generatedPassword']

    def login_deputy(self, password=None):
        self.logout()
        r = self.client.post('/api/auth/admin/login', json={
            'username': 'deputy', 'password': password or self.deputy_password})
        self.assertEqual(r.status_code, 200)

    def profile(self, **fields):
        body = {'firstName': 'Dee', 'lastName': 'Puty', 'email': 'deputy@example.com'}
        body.update(fields)
        return body

    def test_super_admin_edits_any_profile(self):
        r = self.client.put(f'/api/admin/admins/{self.deputy_id}', json=self.profile(mobile='555'))
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.get_json()['user']['mobile'], '555')
        self.assertNotIn('password', r.get_json()['user'])

        r = self.client.put(f'/api/admin/admins/{self.deputy_id}', json=self.profile(lastName=''))
        self.assertEqual(r.status_code, 400)

    def test_admin_edits_only_own_profile(self):
        self.login_deputy()
        r = self.client.put(f'/api/admin/admins/{self.deputy_id}', json=self.profile(firstName='Dana'))
        self.assertEqual(r.status_code, 200)

        r = self.client.put('/api/admin/admins/admin1', json=self.profile(email='root@example.com'))
        self.assertEqual(r.status_code, 403)

    def test_email_must_stay_unique(self):
        self.client.post('/api/admin/admins', json={'username': 'other', 'email': 'other@example.com'})
        r = self.client.put(f'/api/admin/admins/{self.deputy_id}',
                            json=self.profile(email='OTHER@example.com'))
        self.assertEqual(r.status_code, 400)

    def test_only_super_admin_deletes(self):
        self.login_deputy()
        r = self.client.delete(f'/api/admin/admins/{self.deputy_id}')
        self.assertEqual(r.status_code, 403)

        self.logout()
        self.login_admin()
        r = self.client.delete('/api/admin/admins/admin1')
        self.assertEqual(r.status_code, 403)

        r = self.client.delete(f'/api/admin/admins/{self.deputy_id}')
        self.assertEqual(r.status_code, 200)
        self.assertIsNone(store.find_by_id(store.read('admins')['list'], self.deputy_id))

    def test_change_own_password_needs_current(self):
        self.login_deputy()
        url = f'/api/admin/admins/{self.deputy_id}/password'

        r = self.client.put(url, json={'newPassword': 'n3w-pass'})
        self.assertEqual(r.status_code, 400)
        r = self.client.put(url, json={'newPassword': 'n3w-pass', 'currentPassword': 'wrong'})
        self.assertEqual(r.status_code, 400)

        r = self.client.put(url, json={'newPassword': 'n3w-pass',
                                       'currentPassword': self.deputy_password})
        self.assertEqual(r.status_code, 200)
        self.login_deputy('n3w-pass')

        r = self.client.put('/api/admin/admins/admin1/password', json={'newPassword': 'x'})
        self.assertEqual(r.status_code, 403)

    def test_super_admin_resets_password(self):
        r = self.client.put(f'/api/admin/admins/{self.deputy_id}/password',
                            json={'newPassword': 'reset-123'})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.get_json()['message'], 'Password reset successfully')
        self.login_deputy('reset-123')
