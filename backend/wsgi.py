from docvault import create_app


app = create_app()
