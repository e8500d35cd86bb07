import os
import atexit
import traceback
from flask import Flask, render_template, request, redirect, url_for, flash, jsonify
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from capture_pipeline import CapturePipeline
from image_classifier import is_classifier_loaded
from inventory_state import total_weight
from inventory_store import WEIGHT_UNITS
from sync_controller import (
    InventorySyncController,
    ITEM_NOT_FOUND_ERROR,
    REQUIRED_FIELDS_ERROR,
)

# Check if running on Vercel (serverless environment)
IS_VERCEL = os.getenv('VERCEL') == '1' or os.getenv('VERCEL_ENV') is not None

# Load environment variables from .env file (optional - safe for serverless)
try:
    load_dotenv()
except Exception as e:
    if not IS_VERCEL:
        print(f"Note: Could not load .env file: {e}")

_app_file_dir = os.path.dirname(os.path.abspath(__file__))  # api/ directory
_template_folder = os.path.join(_app_file_dir, 'templates')

app = Flask(__name__, template_folder=_template_folder)

# Only used to sign the flash-message cookie
app.secret_key = os.getenv('FLASK_SECRET_KEY', 'supersecretkey')

app.config['SEND_FILE_MAX_AGE_DEFAULT'] = 0
app.config['DEBUG'] = not IS_VERCEL
app.jinja_env.globals.update(total_weight=total_weight, weight_units=WEIGHT_UNITS)


@app.errorhandler(Exception)
def handle_exception(e):
    """Last-resort handler: JSON for /api/ requests, a plain page otherwise"""
    if isinstance(e, HTTPException):
        return e

    error_msg = str(e)
    error_type = type(e).__name__

    print(f"\n{'='*60}")
    print(f"ERROR [{error_type}]: {error_msg}")
    print(f"{'='*60}")
    traceback.print_exc()

    if request.path.startswith('/api/') or request.is_json:
        return jsonify({'success': False, 'error': error_msg, 'type': error_type}), 500
    return f"""
    <html>
        <head><title>Error</title></head>
        <body>
            <h1>An error occurred</h1>
            <p><strong>Error:</strong> {error_msg}</p>
            <p><a href="/">Back to pantry</a></p>
        </body>
    </html>
    """, 500


@app.after_request
def after_request(response):
    """Add CORS headers to all responses"""
    response.headers.add('Access-Control-Allow-Origin', '*')
    response.headers.add('Access-Control-Allow-Headers', 'Content-Type,Authorization')
    response.headers.add('Access-Control-Allow-Methods', 'GET,POST,PATCH,DELETE,OPTIONS')
    if request.method == 'OPTIONS':
        response.status_code = 200
    return response

# ==================== CONTROLLER ====================

# One controller per process: it owns the Firestore listener and the page state
_controller = None
_pipeline = None


def set_controller(controller, pipeline=None):
    """Install the controller (and capture pipeline) the routes use."""
    global _controller, _pipeline
    _controller = controller
    _pipeline = pipeline or CapturePipeline(controller)


def get_controller():
    """Return the process controller, creating and subscribing it on first use."""
    if _controller is None:
        set_controller(InventorySyncController())
        _controller.start()
    return _controller


def get_pipeline():
    get_controller()
    return _pipeline


@atexit.register
def _shutdown():
    if _controller is not None:
        _controller.close()


def _error_status(message):
    if message == REQUIRED_FIELDS_ERROR:
        return 400
    if message == ITEM_NOT_FOUND_ERROR:
        return 404
    return 500


def _failure(controller):
    error = controller.state.error
    return jsonify({'success': False, 'error': error}), _error_status(error)


def _json_text(data, key):
    """JSON field as form text; missing and null both read as blank."""
    value = data.get(key)
    return '' if value is None else str(value)


def _requested_page(controller):
    page = request.args.get('page', type=int)
    if page is not None:
        controller.set_page(page)

# ==================== HTML ROUTES ====================

@app.route("/")
def index():
    controller = get_controller()
    _requested_page(controller)
    with controller.lock:
        view = controller.state.to_dict()
    return render_template("index.html", view=view)


@app.route("/add", methods=["POST"])
def add_item():
    controller = get_controller()
    item = request.form.get("item", "")
    item_id = controller.add_item(
        item,
        request.form.get("quantity", ""),
        request.form.get("weight", ""),
        request.form.get("weightUnit", ""),
    )
    if item_id:
        flash(f"{item} added to pantry.", "success")
    return redirect(url_for("index"))


@app.route("/update/<item_id>", methods=["POST"])
def update_item(item_id):
    quantity = request.form.get("quantity", type=int)
    controller = get_controller()
    if quantity is None:
        flash("Quantity must be a whole number.", "danger")
    else:
        controller.update_quantity(item_id, quantity)
    return redirect(url_for("index"))


@app.route("/delete/<item_id>", methods=["POST"])
def delete_item(item_id):
    get_controller().delete_item(item_id)
    return redirect(url_for("index"))


@app.route("/search", methods=["POST"])
def search():
    get_controller().search(request.form.get("searchTerm", ""))
    return redirect(url_for("index"))


@app.route("/reset", methods=["POST"])
def reset_search():
    get_controller().reset_search()
    return redirect(url_for("index"))


@app.route("/camera/open", methods=["POST"])
def open_camera():
    get_pipeline().open_camera()
    return redirect(url_for("index"))


@app.route("/camera/close", methods=["POST"])
def close_camera():
    get_pipeline().close_camera()
    return redirect(url_for("index"))


@app.route("/capture", methods=["POST"])
def capture_photo():
    photo = request.form.get("photo", "")
    label = get_pipeline().capture(photo)
    if label:
        flash(f"Photo recognized as {label}.", "info")
    return redirect(url_for("index"))

# ==================== JSON API ====================

@app.route('/api/inventory', methods=['GET'])
def api_get_inventory():
    """Current page of the active list plus the page state"""
    controller = get_controller()
    _requested_page(controller)
    with controller.lock:
        view = controller.state.to_dict()
    return jsonify({'success': True, **view})


@app.route('/api/inventory', methods=['POST'])
def api_add_item():
    data = request.get_json(silent=True)
    if data is None:
        return jsonify({'success': False, 'error': 'Invalid request data'}), 400

    controller = get_controller()
    item_id = controller.add_item(
        _json_text(data, 'item'),
        _json_text(data, 'quantity'),
        _json_text(data, 'weight'),
        _json_text(data, 'weightUnit'),
        photo=data.get('photoUrl'),
        classification=data.get('classification'),
    )
    if not item_id:
        return _failure(controller)
    return jsonify({'success': True, 'id': item_id, 'message': f'Added "{data.get("item")}" to pantry'}), 201


@app.route('/api/inventory/<item_id>', methods=['PATCH'])
def api_update_item(item_id):
    data = request.get_json(silent=True) or {}
    quantity = data.get('quantity')
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        return jsonify({'success': False, 'error': 'quantity must be an integer'}), 400

    controller = get_controller()
    if not controller.update_quantity(item_id, quantity):
        return _failure(controller)
    return jsonify({'success': True, 'id': item_id, 'quantity': quantity})


@app.route('/api/inventory/<item_id>', methods=['DELETE'])
def api_delete_item(item_id):
    controller = get_controller()
    if not controller.delete_item(item_id):
        return _failure(controller)
    return jsonify({'success': True, 'message': f'Removed {item_id} from pantry'})


@app.route('/api/inventory/search', methods=['POST'])
def api_search():
    data = request.get_json(silent=True) or {}
    controller = get_controller()
    if not controller.search(_json_text(data, 'searchTerm')):
        return _failure(controller)
    with controller.lock:
        results = list(controller.state.search_results)
    return jsonify({'success': True, 'items': results, 'count': len(results)})


@app.route('/api/inventory/reset', methods=['POST'])
def api_reset_search():
    get_controller().reset_search()
    return jsonify({'success': True})


@app.route('/api/classify', methods=['POST'])
def api_classify():
    """Run a captured photo (data URI) through the classifier"""
    data = request.get_json(silent=True) or {}
    photo = data.get('photo')
    if not photo:
        return jsonify({'success': False, 'error': 'No photo uploaded'}), 400

    pipeline = get_pipeline()
    if pipeline.busy:
        return jsonify({'success': False, 'error': 'Classification already in progress'}), 409

    label = pipeline.capture(photo)
    if label is None:
        return _failure(pipeline.controller)
    return jsonify({'success': True, 'classification': label, 'item': label})


@app.route('/api/health', methods=['GET'])
def api_health():
    """Health check endpoint"""
    controller = get_controller()
    with controller.lock:
        mirrored = len(controller.state.inventory)
    return jsonify({
        'success': True,
        'status': 'healthy',
        'pantry_items': mirrored,
        'classifier_loaded': is_classifier_loaded(),
    })

# Export handler for Vercel serverless functions
handler = app

if __name__ == "__main__":
    port = int(os.getenv('PORT', 5050))
    app.run(debug=False, host='0.0.0.0', port=port)
