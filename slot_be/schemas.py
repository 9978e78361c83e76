from marshmallow import Schema, fields, ValidationError, validates_schema, pre_load
from marshmallow.validate import Range, Length

MIN_TIER_COUNT = 3


class PayoutValue(fields.Field):
    """Positive payout multiplier; integers stay integers so paytables round-trip unchanged."""

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError("Payout must be a number.")
        if value <= 0:
            raise ValidationError("Payout must be positive.")
        return int(value) if float(value).is_integer() else float(value)

    def _serialize(self, value, attr, obj, **kwargs):
        return value


class SymbolName(fields.String):
    def _deserialize(self, value, attr, data, **kwargs):
        value = super()._deserialize(value, attr, data, **kwargs)
        value = value.strip()
        if not value:
            raise ValidationError("Symbol name must not be blank.")
        return value


def _paytable_field(**kwargs):
    return fields.Dict(
        keys=SymbolName(),
        values=fields.Dict(keys=fields.Int(), values=PayoutValue()),
        **kwargs
    )


class PaytableConfigSchema(Schema):
    """Paytable, weights and paylines, cross-validated against each other."""
    weights = fields.Dict(keys=SymbolName(), values=fields.Int(strict=True, validate=Range(min=1)), required=True)
    paytable = _paytable_field(required=True)
    paylines = fields.List(
        fields.List(fields.Int(strict=True), validate=Length(min=1)),
        required=True, validate=Length(min=1)
    )
    visible_rows = fields.Int(load_default=3, validate=Range(min=1))

    @validates_schema
    def validate_consistency(self, data, **kwargs):
        errors = {}
        weights = data.get('weights') or {}
        paytable = data.get('paytable') or {}
        paylines = data.get('paylines') or []
        visible_rows = data.get('visible_rows', 3)

        if not weights:
            errors['weights'] = ["At least one symbol weight is required."]

        reel_count = len(paylines[0]) if paylines else 0
        line_errors = []
        for idx, line in enumerate(paylines):
            if len(line) != reel_count:
                line_errors.append(f"Payline {idx} has {len(line)} positions, expected {reel_count}.")
            out_of_bounds = [row for row in line if not 0 <= row < visible_rows]
            if out_of_bounds:
                line_errors.append(f"Payline {idx} has rows {out_of_bounds} outside [0, {visible_rows}).")
        if line_errors:
            errors['paylines'] = line_errors

        table_errors = []
        for symbol, tiers in paytable.items():
            if symbol not in weights:
                table_errors.append(f"Symbol '{symbol}' has a payout but no weight.")
            bad_counts = sorted(c for c in tiers if not MIN_TIER_COUNT <= c <= reel_count)
            if bad_counts:
                table_errors.append(
                    f"Symbol '{symbol}' defines tiers {bad_counts} outside [{MIN_TIER_COUNT}, {reel_count}]."
                )
        if table_errors:
            errors['paytable'] = table_errors

        if errors:
            raise ValidationError(errors)


class GameConfigSchema(PaytableConfigSchema):
    near_miss_frequency = fields.Float(validate=Range(min=0.0, max=1.0))
    near_miss_symbols = fields.List(SymbolName(), allow_none=True)
    drift_probability = fields.Float(validate=Range(min=0.0, max=1.0))
    drift_symbol = SymbolName(allow_none=True)
    volatility = fields.Float(validate=Range(min=0.5, max=2.0))
    rtp_target = fields.Float(validate=Range(min=0.0, max=1.0))
    max_cascade_iterations = fields.Int(validate=Range(min=1))
    version = fields.Int(validate=Range(min=1))

    @validates_schema
    def validate_symbol_references(self, data, **kwargs):
        weights = data.get('weights') or {}
        errors = {}
        unknown = [s for s in (data.get('near_miss_symbols') or []) if s not in weights]
        if unknown:
            errors['near_miss_symbols'] = [f"Unknown symbols: {unknown}"]
        drift_symbol = data.get('drift_symbol')
        if drift_symbol is not None and drift_symbol not in weights:
            errors['drift_symbol'] = [f"Unknown symbol '{drift_symbol}'."]
        if errors:
            raise ValidationError(errors)


# --- Request schemas ---

class CreateSessionSchema(Schema):
    credit = fields.Int(strict=True, validate=Range(min=0))
    bet = fields.Int(strict=True, validate=Range(min=1))


class SetBetSchema(Schema):
    bet = fields.Int(required=True, strict=True, validate=Range(min=1))


class AddCreditSchema(Schema):
    amount = fields.Int(strict=True, validate=Range(min=1, max=1_000_000))


class RtpRequestSchema(PaytableConfigSchema):
    pass


class AdjustPaytableRequestSchema(PaytableConfigSchema):
    target_rtp = fields.Float(required=True, validate=Range(min=0.0))
    preserve_factor = fields.Float(load_default=0.0)


class RtpTargetSchema(Schema):
    rtp_target = fields.Float(required=True)
    volatility = fields.Float(load_default=None)
    preserve_factor = fields.Float(load_default=0.0)

    @pre_load
    def strip_nulls(self, data, **kwargs):
        return {k: v for k, v in (data or {}).items() if v is not None}


# --- Response schemas ---

class WinEventSchema(Schema):
    payline_index = fields.Int()
    line = fields.List(fields.Int())
    symbol = fields.Str()
    count = fields.Int()
    payout = fields.Raw()
    win_amount = fields.Int()
    positions = fields.List(fields.List(fields.Int()))


class CascadePassSchema(Schema):
    iteration = fields.Int()
    wins = fields.List(fields.Nested(WinEventSchema))
    total = fields.Int()
    accumulated = fields.Int()


class CascadeResultSchema(Schema):
    total_win = fields.Int()
    passes = fields.List(fields.Nested(CascadePassSchema))
    initial_grid = fields.List(fields.List(fields.Str()))
    grid = fields.List(fields.List(fields.Str()))
    near_miss = fields.Dict(allow_none=True)
    aborted = fields.Bool()
    config_version = fields.Int()


class GameSessionSchema(Schema):
    session_id = fields.Str()
    credit = fields.Int()
    bet = fields.Int()
    state = fields.Function(lambda s: s.state.value)
    spins = fields.Int()
    total_wagered = fields.Int()
    total_won = fields.Int()
    config_version = fields.Function(lambda s: s.config.version)
    theoretical_rtp = fields.Function(lambda s: s.config.theoretical_rtp())
    volatility = fields.Function(lambda s: s.config.volatility)
    rtp_target = fields.Function(lambda s: s.config.rtp_target)
