# Vercel serverless function entry point
# Vercel's Python runtime picks up the Flask WSGI app when it is exported as 'app'

import sys
import os

# Sibling modules (app, sync_controller, ...) are imported by plain name
_current_dir = os.path.dirname(os.path.abspath(__file__))
if _current_dir not in sys.path:
    sys.path.insert(0, _current_dir)

from app import app
