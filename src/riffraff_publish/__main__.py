from riffraff_publish.cli import run_entrypoint

run_entrypoint()
