from flask import jsonify


def ok(data=None, message=None, status=200):
    """Envoltorio estándar de respuesta exitosa: {success, message?, data?}."""
    body = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status
