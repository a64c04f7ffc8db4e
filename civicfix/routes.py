# civicfix/routes.py
from flask import Blueprint, jsonify

main = Blueprint('main', __name__)


@main.route('/', methods=['GET'])
def index():
    """A simple homepage to confirm the API is running."""
    return jsonify({'name': 'CivicFix API', 'status': 'running'})


@main.route('/health', methods=['GET'])
def health():
    return jsonify({'status': 'ok'})
