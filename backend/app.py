import logging

from flask import Flask, request, jsonify
from flask_cors import CORS

import compiler
from js_ast import ast_to_dict

app = Flask(__name__)
app.config.from_mapping(
    MAX_SOURCE_CHARS=200_000,
    INCLUDE_TOKENS=True,
    INCLUDE_AST=True,
)
app.config.from_prefixed_env("ANALYZER")
CORS(app)  # the editor front end is served from another origin


def empty_response(message):
    return {
        "lexical": "",
        "syntactic": "",
        "semantic": "",
        "intermediate": [],
        "optimized": [],
        "stats": {},
        "diagnostics": [],
        "tokens": [],
        "ast": {},
        "errors": [message],
    }


@app.route("/analyze", methods=["POST"])
def analyze_code():
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not isinstance(data.get("code"), str):
        return jsonify(empty_response('Request body must be JSON like {"code": "<source>"}')), 400
    code = data["code"]
    limit = app.config["MAX_SOURCE_CHARS"]
    if len(code) > limit:
        return jsonify(empty_response(f"Source is {len(code)} characters; the limit is {limit}")), 413

    try:
        result = compiler.analyze_source(code)
        response = result.to_dict()
        if app.config["INCLUDE_TOKENS"]:
            response["tokens"] = [
                {"kind": tok.kind.value, "lexeme": tok.lexeme, "line": tok.line, "column": tok.column}
                for tok in result.tokens
            ]
        if app.config["INCLUDE_AST"]:
            response["ast"] = ast_to_dict(result.tree)
        return jsonify(response)
    except Exception as e:
        app.logger.exception("analysis failed")
        return jsonify(empty_response(f"Unexpected error: {str(e)}")), 500


@app.route("/sample", methods=["GET"])
def sample():
    return jsonify({"code": compiler.SAMPLE_PROGRAM})


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(levelname)s:%(name)s:%(lineno)d: %(message)s')
    app.run(debug=True)
