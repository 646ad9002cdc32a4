from infrasys.main import app

app(prog_name="infrasys")
