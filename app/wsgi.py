from app.taskmate import create_app

app = create_app()
