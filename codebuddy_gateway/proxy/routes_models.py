from flask import jsonify

from .config import MODEL_CATALOG


def register_model_routes(app):
    @app.get("/v1/models")
    @app.get("/models")
    def list_models():
        return jsonify({"object": "list", "data": [dict(model) for model in MODEL_CATALOG]})
