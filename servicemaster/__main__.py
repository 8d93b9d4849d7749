from servicemaster.cli.commands import app

app()
