"""
Firebase configuration and initialization.
Credentials come either from a JSON string (serverless hosts) or from a
service-account file (local development).
"""
import os
import json
import firebase_admin
from firebase_admin import credentials, firestore

PANTRY_COLLECTION = os.getenv('PANTRY_COLLECTION', 'pantry')

# Shared Firestore client, created on first use
_db = None


def _find_credentials_file():
    """Return the first service-account file found next to the app, or None."""
    credentials_path = os.getenv('FIREBASE_CREDENTIALS_PATH')
    if credentials_path:
        return credentials_path if os.path.exists(credentials_path) else None

    _app_file_dir = os.path.dirname(os.path.abspath(__file__))
    _root_dir = os.path.dirname(_app_file_dir)
    for directory in (_app_file_dir, _root_dir):
        for filename in ('firebase-credentials.json', 'serviceAccountKey.json'):
            path = os.path.join(directory, filename)
            if os.path.exists(path):
                return path
    return None


def _load_credentials():
    """Build a Certificate from FIREBASE_CREDENTIALS_JSON or a credentials file."""
    credentials_json = os.getenv('FIREBASE_CREDENTIALS_JSON')
    if credentials_json:
        try:
            cred_dict = json.loads(credentials_json)
        except json.JSONDecodeError as e:
            print(f"⚠️ Error parsing FIREBASE_CREDENTIALS_JSON: {e}")
            raise
        return credentials.Certificate(cred_dict), 'environment variable'

    credentials_path = _find_credentials_file()
    if not credentials_path:
        raise FileNotFoundError(
            "Firebase credentials not found. "
            "Set FIREBASE_CREDENTIALS_JSON (serverless) or "
            "FIREBASE_CREDENTIALS_PATH (local) environment variable."
        )
    return credentials.Certificate(credentials_path), credentials_path


def initialize_firebase():
    """
    Initialize the Firebase Admin SDK once per process and cache the
    Firestore client.
    """
    global _db

    if firebase_admin._apps:
        _db = firestore.client()
        return

    try:
        cred, source = _load_credentials()
        project_id = os.getenv('FIREBASE_PROJECT_ID')
        if project_id:
            firebase_admin.initialize_app(cred, {'projectId': project_id})
        else:
            firebase_admin.initialize_app(cred)

        _db = firestore.client()
        print(f"✅ Firebase initialized from {source}")
    except Exception as e:
        print(f"❌ Error initializing Firebase: {e}")
        raise


def get_db():
    """
    Get the Firestore database instance, initializing Firebase on first use.

    Returns:
        firestore.Client: the shared client
    """
    if _db is None:
        initialize_firebase()
    return _db


def get_pantry_collection(db=None):
    """Return the CollectionReference holding inventory records."""
    db = db or get_db()
    return db.collection(PANTRY_COLLECTION)
