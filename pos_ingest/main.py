from fastapi import FastAPI

from pos_ingest.routers import process

app = FastAPI(title='POS Ingest')

app.include_router(process.router)


@app.get('/health')
def health() -> dict[str, str]:
    return {'status': 'ok'}
