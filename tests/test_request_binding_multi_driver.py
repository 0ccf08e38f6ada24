"""
End-to-end request binding tests run against every driver.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from restbind import JSONBodyDecoder, JSONResponseEncoder, RestApplication
from restbind.types import Uint16
from tests.framework.multi_driver_base import MultiDriverTestBase


class Item(BaseModel):
    id: int
    name: str
    price: float = 0.0


class NewItem(BaseModel):
    name: str
    price: float = 0.0


class ItemPath(BaseModel):
    ID: int = Field(0, examples=["5"])


class SearchQuery(BaseModel):
    Name: str = ""
    Limit: Uint16 = 20
    Ids: List[int] = Field(default_factory=list)
    Active: Optional[bool] = None


class TestRequestBinding(MultiDriverTestBase):
    """Test path, query and body binding through full request dispatch."""

    def create_app(self):
        app = RestApplication()

        @app.get("/items/{ID}")
        class GetItem(JSONResponseEncoder, BaseModel):
            """Fetch a single item."""

            Path: ItemPath = Field(default_factory=ItemPath, examples=["/items/5"])
            Response: Optional[Item] = None

            def handle(self, ctx, writer):
                if self.Path.ID == 404:
                    raise LookupError("no such item")
                self.Response = Item(id=self.Path.ID, name="widget")

            def handle_error(self, ctx, writer, error):
                writer.write_json({"error": str(error)}, 404)

        @app.get("/items")
        class SearchItems(JSONResponseEncoder, BaseModel):
            Query: SearchQuery = Field(default_factory=SearchQuery)
            Response: Optional[dict] = None

            def handle(self, ctx, writer):
                self.Response = self.Query.model_dump()

            def handle_error(self, ctx, writer, error):
                writer.write_json({"error": str(error)}, 500)

        @app.post("/items/{ID}")
        class CreateItem(JSONBodyDecoder, JSONResponseEncoder, BaseModel):
            Path: ItemPath = Field(default_factory=ItemPath, examples=["/items/5"])
            Body: Optional[NewItem] = None
            Response: Optional[Item] = None

            def handle(self, ctx, writer):
                writer.headers["Location"] = f"/items/{self.Path.ID}"
                writer.write_header(201)
                self.Response = Item(id=self.Path.ID, **self.Body.model_dump())

            def handle_error(self, ctx, writer, error):
                writer.write_json({"error": str(error)}, 500)

        return app

    def test_path_parameter_bound(self, api):
        api_client, driver_name = api

        response = api_client.get_resource("/items/42")
        data = api_client.expect_successful_retrieval(response)
        assert data == {"id": 42, "name": "widget", "price": 0.0}
        assert response.get_header("Content-Type") == "application/json"

    def test_invalid_path_parameter(self, api):
        api_client, driver_name = api

        response = api_client.get_resource("/items/abc")
        errors = api_client.expect_binding_error(response)
        assert errors == {"request.path.ID": 'parsing "abc" as int64: invalid syntax'}

    def test_query_parameters_title_cased(self, api):
        api_client, driver_name = api

        response = api_client.search_resources(
            "/items", {"name": "widget", "limit": "5", "ids": "[1,2,3]", "active": "true"}
        )
        data = api_client.expect_successful_retrieval(response)
        assert data == {"Name": "widget", "Limit": 5, "Ids": [1, 2, 3], "Active": True}

    def test_query_defaults_when_absent(self, api):
        api_client, driver_name = api

        data = api_client.expect_successful_retrieval(api_client.get_resource("/items"))
        assert data == {"Name": "", "Limit": 20, "Ids": [], "Active": None}

    def test_repeated_query_key_uses_first_value(self, api):
        api_client, driver_name = api

        request = api_client.get("/items").with_query("name", "first").with_query("name", "second")
        data = api_client.expect_successful_retrieval(api_client.execute(request))
        assert data["Name"] == "first"

    def test_all_invalid_fields_reported(self, api):
        api_client, driver_name = api

        response = api_client.search_resources("/items", {"limit": "70000", "ids": "[1,x]", "active": "maybe"})
        errors = api_client.expect_binding_error(response)
        assert set(errors) == {"request.query.Limit", "request.query.Ids", "request.query.Active"}
        assert errors["request.query.Limit"] == 'parsing "70000" as uint16: value out of range'

    def test_body_decoded(self, api):
        api_client, driver_name = api

        response = api_client.execute(
            api_client.post("/items/7").with_json_body({"name": "gadget", "price": 9.5})
        )
        assert response.status_code == 201
        assert response.get_header("Location") == "/items/7"
        assert response.get_json_body() == {"id": 7, "name": "gadget", "price": 9.5}

    def test_invalid_body_reported(self, api):
        api_client, driver_name = api

        response = api_client.execute(api_client.post("/items/7").with_text_body("{broken"))
        errors = api_client.expect_binding_error(response)
        assert list(errors) == ["request.body"]

    def test_path_errors_win_over_body(self, api):
        api_client, driver_name = api

        response = api_client.execute(api_client.post("/items/abc").with_text_body("{broken"))
        errors = api_client.expect_binding_error(response)
        assert list(errors) == ["request.path.ID"]

    def test_handler_error_translated(self, api):
        api_client, driver_name = api

        response = api_client.get_resource("/items/404")
        api_client.expect_not_found(response)
        assert response.get_json_body() == {"error": "no such item"}

    def test_unknown_path(self, api):
        api_client, driver_name = api

        api_client.expect_not_found(api_client.get_resource("/orders/1"))

    def test_wrong_method(self, api):
        api_client, driver_name = api

        response = api_client.execute(api_client.delete("/items/1"))
        api_client.expect_method_not_allowed(response)
        assert response.get_header("Allow") == "GET, POST"

    def test_openapi_documents_bound_parameters(self, api):
        api_client, driver_name = api

        spec = api_client.generate_openapi_spec()
        api_client.assert_openapi_valid(spec)
        api_client.assert_has_path(spec, "/items/{ID}", "GET")
        api_client.assert_has_path(spec, "/items", "GET")

        parameter = api_client.get_parameter(spec, "/items/{ID}", "GET", "ID")
        assert parameter["schema"] == {"type": "integer"}
        assert parameter["example"] == "5"

        limit = api_client.get_parameter(spec, "/items", "GET", "Limit", location="query")
        assert limit["schema"]["maximum"] == 65535


class TestBindingErrorStatus(MultiDriverTestBase):
    """Test a custom status for binding errors."""

    def create_app(self):
        from restbind import BinderConfig

        app = RestApplication(config=BinderConfig(error_status=422))

        @app.get("/items/{ID}")
        class GetItem(BaseModel):
            Path: ItemPath = Field(default_factory=ItemPath)

            def handle(self, ctx, writer):
                writer.write_json({"id": self.Path.ID})

            def handle_error(self, ctx, writer, error):
                writer.write_json({"error": str(error)}, 500)

        return app

    def test_custom_error_status(self, api):
        api_client, driver_name = api

        response = api_client.get_resource("/items/1.5")
        errors = api_client.expect_binding_error(response, status_code=422)
        assert "request.path.ID" in errors

    def test_handler_writes_directly(self, api):
        api_client, driver_name = api

        data = api_client.expect_successful_retrieval(api_client.get_resource("/items/3"))
        assert data == {"id": 3}
