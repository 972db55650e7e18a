"""
Basic Example 1 — Hello Subsite
================================
Two subsites and a template served from one FastAPI app.

What you'll learn
-----------------
- Configure SubsitesConfig with in-memory storage (no database needed)
- Add SessionMiddleware + SubsitesMiddleware
- Bind wildcard domains to subsites
- Read the current subsite and its live pages in a route
- Instantiate a template through the admin surface

Run
---
    pip install "fastapi-subsites" "fastapi[standard]" itsdangerous
    uvicorn main:app --reload

Test
----
    # Main site (no binding matches localhost)
    curl http://localhost:8000/pages

    # Acme: any host matching acme.*
    curl http://localhost:8000/pages -H "Host: acme.localhost"

    # Switch with the override parameter (remembered in the session cookie)
    curl -c jar -b jar "http://localhost:8000/pages?SubsiteID=2"

    # Create a subsite from the template as the admin user (id 1)
    curl -X POST "http://localhost:8000/admin/instances?title=Initech&domain=initech.localhost" \
         -H "X-User-Id: 1"
"""
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Header, HTTPException
from starlette.middleware.sessions import SessionMiddleware

from fastapi_subsites import (
    ContentNode,
    DomainBinding,
    Group,
    PermissionCode,
    PermissionDeniedError,
    Principal,
    Stage,
    SubsitesConfig,
    SubsitesManager,
    SubsitesMiddleware,
    Tenant,
    TenantKind,
)
from fastapi_subsites.dependencies import make_current_tenant_dependency

# ── 1. Configuration ──────────────────────────────────────────────────────────
#
# No database_url: the manager falls back to in-memory stores.
#
config = SubsitesConfig(allowed_themes=["simple"])
manager = SubsitesManager(config)

get_subsite = make_current_tenant_dependency(manager)


async def seed() -> int:
    """Create Acme, Globex and a Starter template; return the template id."""
    acme = await manager.registry.create("Acme")
    globex = await manager.registry.create("Globex")
    await manager.tenant_store.add_domain_binding(
        DomainBinding(tenant_id=acme.id, domain="acme.*", is_primary=True)
    )
    await manager.tenant_store.add_domain_binding(
        DomainBinding(tenant_id=globex.id, domain="*.globex.localhost")
    )
    starter = await manager.registry.create("Starter", kind=TenantKind.TEMPLATE)

    for tenant in (acme, globex, starter):
        home = await manager.content_store.write_to_stage(
            ContentNode(tenant_id=tenant.id, title=f"{tenant.title} home", url_segment="home"),
            Stage.DRAFT,
        )
        await manager.content_store.publish(home.id, Stage.DRAFT, Stage.LIVE)

    await manager.group_store.create(
        Group(
            title="Administrators",
            permission_codes=frozenset({PermissionCode.ADMIN.value}),
            member_ids=frozenset({1}),
        )
    )
    return starter.id


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with manager.create_lifespan()(app):
        app.state.template_id = await seed()
        yield


app = FastAPI(title="Hello Subsite — Basic Example", lifespan=lifespan)

# SessionMiddleware is added last so it wraps SubsitesMiddleware.
app.add_middleware(SubsitesMiddleware, manager=manager, excluded_paths=["/health", "/docs"])
app.add_middleware(SessionMiddleware, secret_key="change-me")


def current_principal(x_user_id: Annotated[int | None, Header()] = None) -> Principal | None:
    return Principal(id=x_user_id) if x_user_id is not None else None


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/pages")
async def pages(subsite: Annotated[Tenant | None, Depends(get_subsite)]):
    """List the live pages of the current subsite."""
    nodes = await manager.content_store.list(Stage.LIVE)
    return {
        "subsite": subsite.title if subsite else "Main site",
        "pages": [n.title for n in nodes],
    }


@app.post("/admin/instances")
async def create_instance(
    title: str,
    principal: Annotated[Principal | None, Depends(current_principal)],
    domain: str | None = None,
):
    try:
        tenant = await manager.create_from_template(
            principal, app.state.template_id, title, domain
        )
    except PermissionDeniedError as exc:
        raise HTTPException(status_code=403, detail=exc.message) from exc
    return {"id": tenant.id, "identifier": tenant.identifier}
