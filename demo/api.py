import uvicorn
from fastapi import FastAPI
from msgspec import structs

from dispatchwise import AdapterConfig
from dispatchwise.integration.fastapi import app_factory

DEMO_REGISTRY = "demo.bank:registry"


def demo_app() -> FastAPI:
    config = AdapterConfig.from_env()
    if not config.registry:
        config = structs.replace(config, registry=DEMO_REGISTRY)
    return app_factory(config=config)


if __name__ == "__main__":
    uvicorn.run("demo.api:demo_app", factory=True, reload=True)
