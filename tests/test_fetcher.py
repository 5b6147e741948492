import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer

from cascade_bot.domain import EntitySpec, FilterExpression
from cascade_bot.infrastructure.dataverse import RemoteCollectionFetcher

COUNTRIES = EntitySpec(
    entity_set="crb53_countrieses",
    id_field="crb53_countriesid",
    name_field="crb53_countryname",
)
CITIES = EntitySpec(
    entity_set="crb53_citieses",
    id_field="crb53_citiesid",
    name_field="crb53_cityname",
    parent_field="_crb53_countrylookup_value",
)


class RemoteCollectionFetcherTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.requests: list[web.Request] = []
        self.responses: dict[str, web.StreamResponse] = {}
        app = web.Application()
        app.router.add_get("/api/data/{entity}", self._handle)
        self.server = TestServer(app)
        await self.server.start_server()
        self.fetcher = RemoteCollectionFetcher(str(self.server.make_url("/api/data")))

    async def asyncTearDown(self):
        await self.fetcher.close()
        await self.server.close()

    async def _handle(self, request: web.Request):
        self.requests.append(request)
        response = self.responses.get(request.match_info["entity"])
        if response is None:
            return web.json_response({"value": []})
        return response

    async def test_parents_request_carries_bearer_token(self):
        self.responses["crb53_countrieses"] = web.json_response(
            {
                "@odata.context": "https://org/$metadata#crb53_countrieses",
                "value": [
                    {"@odata.etag": "W/1", "crb53_countriesid": "c1", "crb53_countryname": "Norway", "code": "NO"},
                    {"crb53_countriesid": "c2", "crb53_countryname": "Egypt"},
                ],
            }
        )

        result = await self.fetcher.fetch(COUNTRIES, "secret-token")

        self.assertTrue(result.ok)
        self.assertEqual([(r.id, r.display_name) for r in result.records], [("c1", "Norway"), ("c2", "Egypt")])
        self.assertEqual(dict(result.records[0].extra), {"code": "NO"})
        request = self.requests[0]
        self.assertEqual(request.headers["Authorization"], "Bearer secret-token")
        self.assertEqual(request.headers["Accept"], "application/json")
        self.assertNotIn("$filter", request.query)

    async def test_children_request_uses_filter_expression(self):
        self.responses["crb53_citieses"] = web.json_response(
            {
                "value": [
                    {"crb53_citiesid": "x1", "crb53_cityname": "Oslo", "_crb53_countrylookup_value": "c1"},
                ]
            }
        )

        result = await self.fetcher.fetch(
            CITIES,
            "secret-token",
            filter_expr=FilterExpression("_crb53_countrylookup_value", "c1"),
        )

        self.assertEqual(self.requests[0].query["$filter"], "_crb53_countrylookup_value eq 'c1'")
        self.assertEqual(result.records[0].parent_id, "c1")
        self.assertEqual(result.records[0].display_name, "Oslo")

    async def test_error_body_message_is_reported(self):
        self.responses["crb53_citieses"] = web.json_response(
            {"error": {"code": "0x80040220", "message": "Principal user is missing read privilege"}},
            status=403,
        )

        result = await self.fetcher.fetch(CITIES, "t", filter_expr=FilterExpression("f", "c1"))

        self.assertFalse(result.ok)
        self.assertEqual(result.records, ())
        self.assertEqual(result.error.status, 403)
        self.assertEqual(result.error.message, "Principal user is missing read privilege")

    async def test_status_text_is_used_without_error_body(self):
        self.responses["crb53_countrieses"] = web.Response(status=503, reason="Service Unavailable")

        result = await self.fetcher.fetch(COUNTRIES, "t")

        self.assertEqual(result.error.status, 503)
        self.assertEqual(result.error.message, "Service Unavailable")

    async def test_missing_value_array_is_empty_result(self):
        self.responses["crb53_countrieses"] = web.json_response({})

        result = await self.fetcher.fetch(COUNTRIES, "t")

        self.assertTrue(result.ok)
        self.assertEqual(result.records, ())

    async def test_malformed_body_is_fetch_error(self):
        self.responses["crb53_countrieses"] = web.Response(text="<html>oops</html>", content_type="text/html")

        result = await self.fetcher.fetch(COUNTRIES, "t")

        self.assertEqual(result.error.status, 200)
        self.assertEqual(result.error.message, "Malformed response body")

    async def test_rows_without_id_are_skipped(self):
        self.responses["crb53_countrieses"] = web.json_response(
            {"value": [{"crb53_countryname": "Nowhere"}, {"crb53_countriesid": "c1", "crb53_countryname": "Norway"}]}
        )

        with self.assertLogs("cascade_bot.infrastructure.dataverse.fetcher", level="WARNING"):
            result = await self.fetcher.fetch(COUNTRIES, "t")

        self.assertEqual([r.id for r in result.records], ["c1"])

    async def test_select_fields_option_adds_select_clause(self):
        fetcher = RemoteCollectionFetcher(str(self.server.make_url("/api/data")), select_fields=True)
        self.addAsyncCleanup(fetcher.close)

        await fetcher.fetch(CITIES, "t")

        self.assertEqual(
            self.requests[0].query["$select"],
            "crb53_citiesid,crb53_cityname,_crb53_countrylookup_value",
        )

    async def test_unreachable_host_is_status_zero(self):
        fetcher = RemoteCollectionFetcher("http://127.0.0.1:1/api", request_timeout=5)
        self.addAsyncCleanup(fetcher.close)

        result = await fetcher.fetch(COUNTRIES, "t")

        self.assertFalse(result.ok)
        self.assertEqual(result.error.status, 0)


class FilterExpressionTests(unittest.TestCase):
    def test_quotes_are_doubled(self):
        self.assertEqual(FilterExpression("name", "O'Brien").render(), "name eq 'O''Brien'")


if __name__ == "__main__":
    unittest.main()
