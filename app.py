"""
Main application entry point
"""
from travelstats import create_app
from travelstats.config import settings

app = create_app()

if __name__ == "__main__":
    app.run(
        host=settings.HOST,
        port=settings.PORT,
        debug=settings.DEBUG,
        threaded=True,
    )
