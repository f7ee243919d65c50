from app.fintrack import create_app

app = create_app()
