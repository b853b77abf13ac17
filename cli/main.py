# cli/main.py


import typer
from cli.auth.commands import app as auth_app
from cli.chat.commands import app as chat_app
from cli.audit.commands import app as audit_app
from cli.env.commands import app as env_app

app = typer.Typer(help="PromptSim command line client.")
app.add_typer(auth_app, name="auth")
app.add_typer(chat_app, name="chat")
app.add_typer(audit_app, name="audit")
app.add_typer(env_app, name="env")

if __name__ == "__main__":
    app()
