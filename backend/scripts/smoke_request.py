"""Smoke-test the app in-process.

Builds the app against a throwaway in-memory database and exercises the
public routes plus one authenticated round trip through `/jwt`.
"""

import sys
import os

# Ensure backend folder is on sys.path so `scholarstream` can be imported
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from fastapi.testclient import TestClient
from scholarstream.config import Settings
from scholarstream.database import Database
from scholarstream.main import create_app


def run():
    app = create_app(settings=Settings(DATABASE_URL='sqlite://'), database=Database('sqlite://'))
    client = TestClient(app)
    for path in ('/health', '/scholarships', '/users/role'):
        resp = client.get(path)
        print(path, 'STATUS:', resp.status_code, 'JSON:', resp.json())
    token = client.post('/jwt', json={'email': 'smoke@example.com'}).json()['token']
    resp = client.get('/applications', headers={'Authorization': f'Bearer {token}'})
    print('/applications', 'STATUS:', resp.status_code, 'JSON:', resp.json())


if __name__ == '__main__':
    run()
