"""
Application bootstrap and end-to-end request handling.
"""

import pytest
from typing import Annotated

from heron import (
    AppConfig,
    Inject,
    InjectionToken,
    Param,
    controller,
    create_app,
    get,
    injectable,
    module,
    value_provider,
)
from heron.response import Response

from tests.conftest import make_request


GREETING = InjectionToken("GREETING")


@injectable(scope="request")
class RequestContext:
    pass


class UserRepository:
    def find(self, user_id):
        return {"id": user_id, "name": f"user-{user_id}"}


class UserService:
    def __init__(self, repo: UserRepository, ctx: RequestContext):
        self.repo = repo
        self.ctx = ctx


class AuditService:
    def __init__(self, ctx: RequestContext):
        self.ctx = ctx


# ============================================================================
# End-to-end
# ============================================================================

class TestUsersEndToEnd:

    def make_app(self, seen, **config):
        @controller("/users")
        class UserController:
            def __init__(self, users: UserService, audit: AuditService):
                self.users = users
                self.audit = audit

            @get("/:id")
            async def find(self, id: Annotated[str, Param("id")]):
                seen.append(self)
                return self.users.repo.find(id)

        @module(controllers=[UserController], providers=[UserRepository, UserService, AuditService, RequestContext])
        class UsersModule:
            pass

        @module(imports=[UsersModule])
        class AppModule:
            pass

        return create_app(AppModule, AppConfig(**config))

    @pytest.mark.asyncio
    async def test_get_user(self):
        app = self.make_app([])
        response = await app.handle(make_request("GET", "/users/42"))
        assert response.status_code == 200
        assert response.json_body() == {"id": "42", "name": "user-42"}
        assert response.get_header("content-type").startswith("application/json")

    @pytest.mark.asyncio
    async def test_request_scoped_dependency_per_request(self):
        seen = []
        app = self.make_app(seen)
        await app.handle(make_request("GET", "/users/1"))
        await app.handle(make_request("GET", "/users/2"))

        first, second = seen
        assert first is not second
        assert first.users.ctx is not second.users.ctx
        # Shared within one request
        assert first.users.ctx is first.audit.ctx
        assert second.users.ctx is second.audit.ctx
        # Singletons survive across requests
        assert first.users.repo is second.users.repo
        assert app.container.active_request_scopes == 0

    @pytest.mark.asyncio
    async def test_explicit_request_ids(self):
        seen = []
        app = self.make_app(seen)
        await app.handle(make_request("GET", "/users/1"), request_id="a")
        await app.handle(make_request("GET", "/users/1"), request_id="b")
        assert seen[0].users.ctx is not seen[1].users.ctx

    @pytest.mark.asyncio
    async def test_global_prefix(self):
        app = self.make_app([], global_prefix="/api/")
        ok = await app.handle(make_request("GET", "/api/users/42"))
        assert ok.status_code == 200
        missing = await app.handle(make_request("GET", "/users/42"))
        assert missing.status_code == 404

    @pytest.mark.asyncio
    async def test_unmatched_route_is_404(self):
        app = self.make_app([])
        response = await app.handle(make_request("DELETE", "/users/42"))
        assert response.status_code == 404
        assert response.json_body() == {"statusCode": 404, "message": "Cannot DELETE /users/42"}

    @pytest.mark.asyncio
    async def test_not_found_handler(self):
        async def not_found(request, response):
            response.status(404).json({"missing": request.path})

        app = self.make_app([], not_found_handler=not_found)
        response = await app.handle(make_request("GET", "/nowhere"))
        assert response.json_body() == {"missing": "/nowhere"}

    @pytest.mark.asyncio
    async def test_not_found_handler_that_does_not_respond(self):
        calls = []
        app = self.make_app([], not_found_handler=lambda req, res: calls.append(req.path))
        response = await app.handle(make_request("GET", "/nowhere"))
        assert calls == ["/nowhere"]
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_handle_uses_given_response(self):
        app = self.make_app([])
        response = Response()
        returned = await app.handle(make_request("GET", "/users/5"), response)
        assert returned is response

    def test_routes_are_bound(self):
        app = self.make_app([])
        assert [(r.method, r.path) for r in app.routes] == [("GET", "/users/:id")]
        assert app.routes[0].per_request is True
        assert len(app.router) == 1


# ============================================================================
# Controller Lifetimes
# ============================================================================

class TestControllerLifetimes:

    @pytest.mark.asyncio
    async def test_singleton_controller_reused(self):
        instances = []

        @controller("/counter")
        class CounterController:
            def __init__(self):
                instances.append(self)
                self.count = 0

            @get("/")
            async def hit(self):
                self.count += 1
                return {"count": self.count}

        @module(controllers=[CounterController])
        class AppModule:
            pass

        app = create_app(AppModule)
        await app.handle(make_request("GET", "/counter"))
        response = await app.handle(make_request("GET", "/counter"))
        assert response.json_body() == {"count": 2}
        assert len(instances) == 1
        assert app.routes[0].per_request is False

    @pytest.mark.asyncio
    async def test_request_scoped_controller(self):
        @controller("/fresh", scope="request")
        class FreshController:
            def __init__(self):
                self.count = 0

            @get("/")
            async def hit(self):
                self.count += 1
                return {"count": self.count}

        @module(controllers=[FreshController])
        class AppModule:
            pass

        app = create_app(AppModule)
        await app.handle(make_request("GET", "/fresh"))
        response = await app.handle(make_request("GET", "/fresh"))
        assert response.json_body() == {"count": 1}

    def test_resolve_from_application(self):
        @module(providers=[value_provider(GREETING, "hello")])
        class AppModule:
            pass

        app = create_app(AppModule)
        assert app.resolve(GREETING) == "hello"


# ============================================================================
# Bootstrap Isolation
# ============================================================================

class TestBootstrapIsolation:

    @pytest.mark.asyncio
    async def test_broken_controller_skipped(self, caplog):
        @controller("/broken")
        class BrokenController:
            def __init__(self, greeting: Annotated[str, Inject(GREETING)]):
                self.greeting = greeting

            @get("/")
            async def index(self):
                return {}

        @controller("/healthy")
        class HealthyController:
            @get("/")
            async def index(self):
                return {"status": "ok"}

        @module(controllers=[BrokenController, HealthyController])
        class AppModule:
            pass

        app = create_app(AppModule)
        assert "Failed to bind controller" in caplog.text

        healthy = await app.handle(make_request("GET", "/healthy"))
        assert healthy.json_body() == {"status": "ok"}
        broken = await app.handle(make_request("GET", "/broken"))
        assert broken.status_code == 404

    @pytest.mark.asyncio
    async def test_dependency_provided_by_imported_module(self):
        @controller("/greet")
        class GreetController:
            def __init__(self, greeting: Annotated[str, Inject(GREETING)]):
                self.greeting = greeting

            @get("/")
            async def index(self):
                return {"greeting": self.greeting}

        @module(providers=[value_provider(GREETING, "hi")])
        class ConfigModule:
            pass

        @module(imports=[ConfigModule], controllers=[GreetController])
        class AppModule:
            pass

        app = create_app(AppModule)
        response = await app.handle(make_request("GET", "/greet"))
        assert response.json_body() == {"greeting": "hi"}
