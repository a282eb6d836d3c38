from werkzeug.security import generate_password_hash

from app import create_app
import store

# Create an app instance to get an application context
app = create_app()

with app.app_context():
    # --- 1. CLEAR DATA ---
    print("Clearing old data...")
    for collection, document in store.default_documents().items():
        store.write(collection, document)
    print("Clearing done.")

    # --- 2. DEMO DATA ---
    print("Adding demo data...")
    now = store.utcnow_iso()

    band = {'id': 'cat_band', 'name': 'Band', 'description': 'Live band performances',
            'image': None, 'createdAt': now}
    singing = {'id': 'cat_singing', 'name': 'Singing', 'description': 'Solo vocal performances',
               'image': None, 'createdAt': now}
    store.write('categories', {'list': [band, singing]})

    contestants = [
        {'id': 'c_thunder', 'name': 'Thunder Road', 'company': 'Engineering', 'categoryId': 'cat_band'},
        {'id': 'c_offbeat', 'name': 'The Offbeats', 'company': 'Finance', 'categoryId': 'cat_band'},
        {'id': 'c_static', 'name': 'Static Noise', 'company': 'Marketing', 'categoryId': 'cat_band'},
        {'id': 'c_maria', 'name': 'Maria Lopez', 'company': 'Sales', 'categoryId': 'cat_singing'},
        {'id': 'c_ken', 'name': 'Ken Adams', 'company': 'Support', 'categoryId': 'cat_singing'},
    ]
    for contestant in contestants:
        contestant.update({'description': '', 'image': None, 'createdAt': now})
    store.write('contestants', {'list': contestants})

    def criterion(criterion_id, name, weight):
        return {'id': criterion_id, 'name': name, 'description': '', 'weight': weight,
                'maxScore': 10, 'createdAt': now}

    store.write('criteria', {'categories': {
        'cat_band': [criterion('crit_music', 'Musicality', 40),
                     criterion('crit_stage', 'Stage presence', 30),
                     criterion('crit_orig', 'Originality', 30)],
        'cat_singing': [criterion('crit_vocal', 'Vocal technique', 60),
                        criterion('crit_perf', 'Performance', 40)],
    }})

    # Every demo judge logs in with the password "judge123"
    judges = [{
        'id': f'judge{n}',
        'name': f'Judge {n}',
        'username': f'judge{n}',
        'description': '',
        'image': None,
        'password': generate_password_hash('judge123'),
        'createdAt': now,
    } for n in range(1, 4)]
    store.write('judges', {'list': judges})

    audience = [
        {'id': 'aud_1', 'firstName': 'Anna', 'lastName': 'Smith', 'email': 'anna@example.com',
         'mobile': '', 'company': 'Engineering', 'loginCode': 'ANNA01', 'createdAt': now},
        {'id': 'aud_2', 'firstName': 'Ben', 'lastName': 'Clark', 'email': 'ben@example.com',
         'mobile': '', 'company': 'Finance', 'loginCode': 'BEN002', 'createdAt': now},
        {'id': 'aud_3', 'firstName': 'Chloe', 'lastName': 'Kim', 'email': 'chloe@example.com',
         'mobile': '', 'company': 'Sales', 'loginCode': 'CHLOE3', 'createdAt': now},
    ]
    store.write('audience', {'list': audience})

    settings = store.read('settings')
    settings.update({
        'eventName': 'Annual Talent Show',
        'eventDescription': 'Company talent show with judge and audience voting',
        'votingOpen': True,
    })
    store.write('settings', settings)

    print("Demo data added.")
    print("Admin: admin / admin123, judges: judge1..judge3 / judge123, audience codes: "
          + ", ".join(member['loginCode'] for member in audience))
