from f1x.cli import app

app()
