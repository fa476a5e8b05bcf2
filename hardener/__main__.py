from hardener.cli import run

run()
