from flask import Blueprint, jsonify
from datetime import datetime, timezone

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Spot the Difference game server!'})

@main.route('/health')
def health():
    return jsonify({'status': 'ok', 'timestamp': datetime.now(timezone.utc).isoformat()})
