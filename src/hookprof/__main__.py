from hookprof.cli import app

app(prog_name="hookprof")
