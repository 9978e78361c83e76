from flask import Blueprint, request, jsonify, current_app

from slot_be.error_codes import ErrorCodes
from slot_be.exceptions import InternalInvariantViolationException, ValidationException
from slot_be.schemas import (
    AddCreditSchema, CascadeResultSchema, CreateSessionSchema, GameSessionSchema,
    RtpTargetSchema, SetBetSchema
)

slots_bp = Blueprint('slots', __name__, url_prefix='/api/slots')


def _json_body(allow_empty=False):
    data = request.get_json(silent=True)
    if data is None and allow_empty:
        return {}
    if not isinstance(data, dict):
        raise ValidationException("Invalid request format: Not valid JSON.", error_code=ErrorCodes.VALIDATION_ERROR)
    return data


def _session_payload(session):
    return GameSessionSchema().dump(session)


@slots_bp.route('/sessions', methods=['POST'])
def create_session():
    data = CreateSessionSchema().load(_json_body(allow_empty=True))
    session = current_app.session_manager.create_session(credit=data.get('credit'), bet=data.get('bet'))
    return jsonify({'status': True, 'session': _session_payload(session)}), 201


@slots_bp.route('/sessions/<session_id>', methods=['GET'])
def get_session(session_id):
    session = current_app.session_manager.get_session(session_id)
    payload = {'status': True, 'session': _session_payload(session)}
    if session.grid is not None:
        payload['grid'] = session.grid.to_list()
    return jsonify(payload), 200


@slots_bp.route('/sessions/<session_id>', methods=['DELETE'])
def delete_session(session_id):
    current_app.session_manager.delete_session(session_id)
    return jsonify({'status': True}), 200


@slots_bp.route('/sessions/<session_id>/bet', methods=['POST'])
def set_bet(session_id):
    data = SetBetSchema().load(_json_body())
    session = current_app.session_manager.set_bet(session_id, data['bet'])
    return jsonify({'status': True, 'session': _session_payload(session)}), 200


@slots_bp.route('/sessions/<session_id>/credit', methods=['POST'])
def add_credit(session_id):
    data = AddCreditSchema().load(_json_body(allow_empty=True))
    session = current_app.session_manager.add_credit(session_id, data.get('amount'))
    return jsonify({'status': True, 'session': _session_payload(session)}), 200


@slots_bp.route('/sessions/<session_id>/rtp-target', methods=['POST'])
def set_rtp_target(session_id):
    data = RtpTargetSchema().load(_json_body())
    session = current_app.session_manager.set_rtp_volatility(
        session_id, data['rtp_target'], data['volatility'], data['preserve_factor']
    )
    return jsonify({
        'status': True,
        'session': _session_payload(session),
        'paytable': session.config.paytable,
    }), 200


@slots_bp.route('/sessions/<session_id>/spin', methods=['POST'])
def spin(session_id):
    manager = current_app.session_manager
    try:
        session, result = manager.spin(session_id)
    except InternalInvariantViolationException as e:
        # The committed part of the cascade has been credited; tell the client what it got.
        if e.partial_result is not None:
            e.details = dict(e.details, result=CascadeResultSchema().dump(e.partial_result))
        raise

    return jsonify({
        'status': True,
        'result': CascadeResultSchema().dump(result),
        'session': _session_payload(session),
    }), 200
