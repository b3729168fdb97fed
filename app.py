from citas import create_app, db
from citas.health import log_connection_status

app = create_app()

if __name__ == "__main__":
    with app.app_context():
        if log_connection_status():
            db.create_all()
    app.run(host="0.0.0.0", port=app.config["PORT"])
