"""
optimizer.py
Rewriting passes over a quadruple sequence.

Every pass takes a list of quadruples and returns ``(new_list, changed)``.
``optimize`` repeats the whole pass list until nothing changes, so its
output is a fixpoint and optimizing twice gives the same result. No pass
ever inserts an instruction.

Temporaries look like ``t1`` and generated labels like ``L1``, but a
program may use those spellings for its own variables and functions. The
passes therefore take ``user_names``, the names the program binds or
mentions, and never treat one of them as a temporary or generated label.
"""

import json
import logging
import math
import re
from dataclasses import replace

from quadruples import Op, literal_operand

log = logging.getLogger(__name__)

TEMP_RE = re.compile(r't\d+')
LABEL_RE = re.compile(r'L\d+')
_TEMP_TOKEN_RE = re.compile(r'(?<![\w$])t\d+(?![\w$])')
_NUMBER_RE = re.compile(r'-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?')
_JS_NUMERIC_RE = re.compile(r'[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?')

NOT_CONSTANT = object()

FOLDABLE_BINARY = frozenset({
    Op.ADD, Op.SUB, Op.MUL, Op.DIV, Op.MOD, Op.POW, Op.EQ, Op.NE,
    Op.STRICT_EQ, Op.STRICT_NE, Op.LT, Op.LE, Op.GT, Op.GE, Op.CONCAT,
})
FOLDABLE_UNARY = frozenset({Op.NEG, Op.POS, Op.NOT, Op.TYPEOF})
# definitions that can be dropped when their temporary is never read
REMOVABLE = FOLDABLE_BINARY | FOLDABLE_UNARY | {Op.ASSIGN}
NO_DEFINITION = frozenset({Op.LABEL, Op.GOTO, Op.JUMP_IF_FALSE, Op.PARAM, Op.RETURN, Op.SET_PROP})


def is_temp(operand, user_names=frozenset()):
    return (operand is not None and operand not in user_names
            and TEMP_RE.fullmatch(operand) is not None)


def is_generated_label(label, user_names=frozenset()):
    return label not in user_names and LABEL_RE.fullmatch(label) is not None


def constant_value(operand):
    """Python value of a literal operand, or NOT_CONSTANT."""
    if operand is None:
        return NOT_CONSTANT
    if operand == 'true':
        return True
    if operand == 'false':
        return False
    if operand == 'null':
        return None
    if _NUMBER_RE.fullmatch(operand):
        return float(operand)
    if len(operand) >= 2 and operand[0] == operand[-1] == '"':
        try:
            return json.loads(operand)
        except ValueError:
            return NOT_CONSTANT
    return NOT_CONSTANT


def is_constant(operand):
    return constant_value(operand) is not NOT_CONSTANT


# -- JavaScript value semantics ----------------------------------------------

def js_typeof(v):
    if v is None:
        return 'object'
    if isinstance(v, bool):
        return 'boolean'
    if isinstance(v, str):
        return 'string'
    return 'number'


def to_number(v):
    if v is None:
        return 0.0
    if isinstance(v, bool):
        return 1.0 if v else 0.0
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return 0.0
        if _JS_NUMERIC_RE.fullmatch(s):
            return float(s)
        if s in ('Infinity', '+Infinity'):
            return math.inf
        if s == '-Infinity':
            return -math.inf
        if s[:2].lower() == '0x' and re.fullmatch(r'[0-9A-Fa-f]+', s[2:]):
            return float(int(s[2:], 16))
        return math.nan
    return float(v)


def to_string(v):
    if v is None:
        return 'null'
    if isinstance(v, bool):
        return 'true' if v else 'false'
    if isinstance(v, str):
        return v
    return literal_operand(v)


def truthy(v):
    if v is None:
        return False
    if isinstance(v, str):
        return v != ''
    if isinstance(v, bool):
        return v
    return v != 0 and not math.isnan(v)


def strict_equal(a, b):
    if js_typeof(a) != js_typeof(b):
        return False
    return a == b


def loose_equal(a, b):
    if js_typeof(a) == js_typeof(b):
        return a == b
    if a is None or b is None:
        return False
    return to_number(a) == to_number(b)


def compare(op, a, b):
    if isinstance(a, str) and isinstance(b, str):
        x, y = a, b
    else:
        x, y = to_number(a), to_number(b)
        if math.isnan(x) or math.isnan(y):
            return False
    return {Op.LT: x < y, Op.LE: x <= y, Op.GT: x > y, Op.GE: x >= y}[op]


def js_mod(a, b):
    return math.fmod(a, b)


def fold_binary(op, a, b):
    """Folded value, or NOT_CONSTANT when the result must stay a runtime computation."""
    if op == Op.ADD:
        if isinstance(a, str) or isinstance(b, str):
            return to_string(a) + to_string(b)
        return to_number(a) + to_number(b)
    if op == Op.CONCAT:
        return to_string(a) + to_string(b)
    if op in (Op.SUB, Op.MUL, Op.DIV, Op.MOD, Op.POW):
        x, y = to_number(a), to_number(b)
        if op in (Op.DIV, Op.MOD) and y == 0:
            return NOT_CONSTANT
        try:
            if op == Op.SUB:
                return x - y
            if op == Op.MUL:
                return x * y
            if op == Op.DIV:
                return x / y
            if op == Op.MOD:
                return js_mod(x, y)
            return math.pow(x, y)
        except (OverflowError, ValueError):
            return NOT_CONSTANT
    if op == Op.EQ:
        return loose_equal(a, b)
    if op == Op.NE:
        return not loose_equal(a, b)
    if op == Op.STRICT_EQ:
        return strict_equal(a, b)
    if op == Op.STRICT_NE:
        return not strict_equal(a, b)
    if op in (Op.LT, Op.LE, Op.GT, Op.GE):
        return compare(op, a, b)
    return NOT_CONSTANT


def fold_unary(op, a):
    if op == Op.NEG:
        return -to_number(a)
    if op == Op.POS:
        return to_number(a)
    if op == Op.NOT:
        return not truthy(a)
    if op == Op.TYPEOF:
        return js_typeof(a)
    return NOT_CONSTANT


def is_finite_value(v):
    return not isinstance(v, float) or math.isfinite(v)


# -- passes --------------------------------------------------------------------

def fold_constants(quads, user_names=frozenset()):
    """Replace operations on literal operands with a literal ASSIGN, and
    resolve JUMP_IF_FALSE on a literal condition."""
    result = []
    changed = False
    for q in quads:
        value = NOT_CONSTANT
        if q.op in FOLDABLE_BINARY:
            a, b = constant_value(q.arg1), constant_value(q.arg2)
            if a is not NOT_CONSTANT and b is not NOT_CONSTANT:
                value = fold_binary(q.op, a, b)
        elif q.op in FOLDABLE_UNARY:
            a = constant_value(q.arg1)
            if a is not NOT_CONSTANT:
                value = fold_unary(q.op, a)
        elif q.op == Op.JUMP_IF_FALSE:
            cond = constant_value(q.arg1)
            if cond is not NOT_CONSTANT:
                changed = True
                if not truthy(cond):
                    result.append(replace(q, op=Op.GOTO, arg1=q.arg2, arg2=None))
                continue

        if value is not NOT_CONSTANT and is_finite_value(value):
            result.append(replace(q, op=Op.ASSIGN, arg1=literal_operand(value), arg2=None))
            changed = True
        else:
            result.append(q)
    return result, changed


def propagate_constants(quads, user_names=frozenset()):
    """Substitute literal values for temporaries that are assigned exactly once."""
    definitions = {}
    for q in quads:
        if q.op not in NO_DEFINITION and is_temp(q.result, user_names):
            definitions.setdefault(q.result, []).append(q)
    known = {}
    for name, defs in definitions.items():
        if len(defs) == 1 and defs[0].op == Op.ASSIGN and is_constant(defs[0].arg1):
            known[name] = defs[0].arg1

    if not known:
        return list(quads), False
    result = []
    changed = False
    for q in quads:
        arg1 = known.get(q.arg1, q.arg1) if q.op not in (Op.GOTO, Op.LABEL) else q.arg1
        arg2 = known.get(q.arg2, q.arg2) if q.op != Op.JUMP_IF_FALSE else q.arg2
        if q.op == Op.CALL or q.op == Op.NEW:
            arg2 = q.arg2
        if (arg1, arg2) != (q.arg1, q.arg2):
            q = replace(q, arg1=arg1, arg2=arg2)
            changed = True
        result.append(q)
    return result, changed


def dead_code_elimination(quads, user_names=frozenset()):
    """Drop pure definitions of temporaries nothing reads."""
    uses = set()
    for q in quads:
        for operand in (q.arg1, q.arg2):
            if operand is not None:
                uses.update(_TEMP_TOKEN_RE.findall(operand))
        if q.op == Op.SET_PROP and q.result is not None:
            uses.add(q.result)
    result = [q for q in quads
              if not (q.op in REMOVABLE and is_temp(q.result, user_names) and q.result not in uses)]
    return result, len(result) != len(quads)


def jump_target(q):
    if q.op == Op.GOTO:
        return q.arg1
    if q.op == Op.JUMP_IF_FALSE:
        return q.arg2
    return None


def with_target(q, label):
    if q.op == Op.GOTO:
        return replace(q, arg1=label)
    return replace(q, arg2=label)


def label_positions(quads):
    return {q.result: i for i, q in enumerate(quads) if q.op == Op.LABEL}


def collapse_jump_chains(quads, user_names=frozenset()):
    """Point jumps straight at the end of a GOTO chain."""
    positions = label_positions(quads)

    def resolve(label):
        seen = {label}
        current = label
        while True:
            i = positions.get(current)
            if i is None:
                return current
            i += 1
            while i < len(quads) and quads[i].op == Op.LABEL:
                i += 1
            if i >= len(quads) or quads[i].op != Op.GOTO:
                return current
            nxt = quads[i].arg1
            if nxt in seen:
                # a GOTO cycle; leave it alone
                return label
            seen.add(nxt)
            current = nxt

    result = []
    changed = False
    for q in quads:
        target = jump_target(q)
        if target is not None:
            final = resolve(target)
            if final != target:
                q = with_target(q, final)
                changed = True
        result.append(q)
    return result, changed


def remove_jumps_to_next(quads, user_names=frozenset()):
    """Drop a jump whose target label follows it with only generated labels in between."""
    result = []
    changed = False
    for i, q in enumerate(quads):
        target = jump_target(q)
        if target is not None:
            j = i + 1
            lands_next = False
            while j < len(quads) and quads[j].op == Op.LABEL:
                if quads[j].result == target:
                    lands_next = True
                    break
                if not is_generated_label(quads[j].result, user_names):
                    break
                j += 1
            if lands_next:
                changed = True
                continue
        result.append(q)
    return result, changed


def eliminate_unreachable(quads, user_names=frozenset()):
    """Drop everything between a GOTO/RETURN and the next label control can reach."""
    targets = {jump_target(q) for q in quads} - {None}
    result = []
    reachable = True
    for q in quads:
        if q.op == Op.LABEL and (q.result in targets or not is_generated_label(q.result, user_names)):
            reachable = True
        if reachable:
            result.append(q)
            if q.op in (Op.GOTO, Op.RETURN):
                reachable = False
    return result, len(result) != len(quads)


def merge_labels(quads, user_names=frozenset()):
    """Collapse runs of adjacent labels into one and drop labels nothing jumps to."""
    renamed = {}
    keep = []
    i = 0
    while i < len(quads):
        if quads[i].op != Op.LABEL:
            keep.append(quads[i])
            i += 1
            continue
        j = i
        while j < len(quads) and quads[j].op == Op.LABEL:
            j += 1
        run = quads[i:j]
        entries = [q for q in run if not is_generated_label(q.result, user_names)]
        survivor = entries[0].result if entries else run[0].result
        for q in run:
            if is_generated_label(q.result, user_names) and q.result != survivor:
                renamed[q.result] = survivor
            else:
                keep.append(q)
        i = j

    result = []
    for q in keep:
        target = jump_target(q)
        if target in renamed:
            q = with_target(q, renamed[target])
        result.append(q)
    targets = {jump_target(q) for q in result} - {None}
    result = [q for q in result
              if not (q.op == Op.LABEL and is_generated_label(q.result, user_names)
                      and q.result not in targets)]
    return result, result != list(quads)


PASSES = (
    fold_constants,
    propagate_constants,
    dead_code_elimination,
    collapse_jump_chains,
    remove_jumps_to_next,
    eliminate_unreachable,
    merge_labels,
)


def renumber(quads):
    return tuple(q if q.index == i else replace(q, index=i) for i, q in enumerate(quads))


def optimize(quads, user_names=frozenset()):
    user_names = frozenset(user_names)
    code = list(quads)
    rounds = 0
    while True:
        rounds += 1
        changed = False
        for opt_pass in PASSES:
            code, did_change = opt_pass(code, user_names)
            changed = changed or did_change
        if not changed:
            break
    log.debug("optimized %d -> %d quadruples in %d rounds", len(quads), len(code), rounds)
    return renumber(code)
