from flask import Blueprint, request, jsonify, current_app

from slot_be.error_codes import ErrorCodes
from slot_be.exceptions import ValidationException
from slot_be.schemas import RtpRequestSchema, AdjustPaytableRequestSchema
from slot_be.utils.game_config_manager import GameConfigManager
from slot_be.utils.rtp_engine import adjust_paytable_to_rtp, build_rtp_report, compute_theoretical_rtp

config_bp = Blueprint('config', __name__, url_prefix='/api/config')


def _json_body():
    data = request.get_json(silent=True)
    if data is None or not isinstance(data, dict):
        raise ValidationException("Invalid request format: Not valid JSON.", error_code=ErrorCodes.VALIDATION_ERROR)
    return data


@config_bp.route('', methods=['GET'])
@config_bp.route('/', methods=['GET'])
def get_default_config():
    config = GameConfigManager.default_config(current_app.config)
    return jsonify({
        'status': True,
        'config': config.to_dict(),
        'theoretical_rtp': config.theoretical_rtp(),
    }), 200


@config_bp.route('/rtp', methods=['POST'])
def compute_rtp():
    # Marshmallow errors are handled by the global ValidationError handler.
    data = RtpRequestSchema().load(_json_body())
    report = build_rtp_report(data['paytable'], data['weights'], data['paylines'])
    return jsonify({'status': True, 'rtp': report['rtp'], 'report': report}), 200


@config_bp.route('/adjust', methods=['POST'])
def adjust_paytable():
    data = AdjustPaytableRequestSchema().load(_json_body())
    paytable, weights, paylines = data['paytable'], data['weights'], data['paylines']

    rtp_before = compute_theoretical_rtp(paytable, weights, paylines)
    adjusted = adjust_paytable_to_rtp(paytable, weights, paylines, data['target_rtp'], data['preserve_factor'])
    rtp_after = compute_theoretical_rtp(adjusted, weights, paylines)
    current_app.logger.info(
        f"Paytable adjusted: rtp {rtp_before:.6f} -> {rtp_after:.6f} "
        f"(target {data['target_rtp']}, preserve_factor {data['preserve_factor']})"
    )
    return jsonify({
        'status': True,
        'paytable': adjusted,
        'rtp_before': rtp_before,
        'rtp_after': rtp_after,
        'target_rtp': data['target_rtp'],
    }), 200
