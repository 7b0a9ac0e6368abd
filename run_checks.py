from fastapi.testclient import TestClient
from app.main import app

ADMIN = {"X-User-Id": "admin-1"}

with TestClient(app) as client:
    print('ROOT:')
    print(client.get('/').json())

    print('\nHEALTH:')
    print(client.get('/health').json())

    print('\nINGEST HEALTH:')
    resp = client.get('/health/ingest')
    print(resp.status_code)
    print(resp.json())

    print('\nADMIN SUMMARY:')
    resp = client.get('/dashboard/summary', headers=ADMIN)
    print(resp.status_code)
    try:
        print(resp.json())
    except Exception:
        print(resp.text)

    print('\nTREND:')
    print(client.get('/dashboard/trend', headers=ADMIN).json())
