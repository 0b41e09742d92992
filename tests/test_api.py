"""
Integration tests for API endpoints
"""
import json

from studyguide.services.llm import get_completion_provider
from studyguide.main import app


def create_reviewer(client, text, title="Cells", use_ai=False):
    response = client.post("/api/generate-reviewer", json={"text": text, "title": title, "useAi": use_ai})
    assert response.status_code == 200
    return response.json()


class TestHealthEndpoints:
    def test_health_check(self, client):
        """Test health check endpoint"""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["llm"]["status"] == "degraded"

    def test_metrics_endpoint(self, client):
        """Test metrics endpoint"""
        client.get("/health")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert "http_requests_total" in response.text

    def test_process_time_header(self, client):
        """Every response carries its processing time"""
        response = client.get("/health")
        assert float(response.headers["X-Process-Time"]) >= 0


class TestReviewerEndpoints:
    def test_generate_reviewer(self, client, biology_text):
        """Heuristic reviewer is generated, stored and returned in camelCase"""
        data = create_reviewer(client, biology_text)
        assert data["reviewerId"] == data["id"]
        assert data["title"] == "Cells"
        assert data["sections"][0]["title"] == "Introduction"
        assert len(data["concepts"]) == 8
        assert data["concepts"][0]["type"] == "definition"
        assert data["metadata"]["processingVersion"].endswith("-heuristic")
        assert data["report"]["mode"] == "heuristic"
        assert data["report"]["thinSourceMaterial"] is False
        assert data["originalText"] == biology_text

    def test_blank_text_rejected(self, client):
        """Whitespace-only text is a client error"""
        response = client.post("/api/generate-reviewer", json={"text": "   "})
        assert response.status_code == 400
        assert response.json()["detail"] == "Text is required"

    def test_get_and_list(self, client, biology_text):
        """Stored reviewers can be fetched and listed"""
        created = create_reviewer(client, biology_text, title="Plant Cells")

        response = client.get(f"/api/reviewer/{created['id']}")
        assert response.status_code == 200
        assert response.json()["concepts"] == created["concepts"]

        listed = client.get("/api/reviewers").json()
        entry = next(r for r in listed if r["id"] == created["id"])
        assert entry["title"] == "Plant Cells"
        assert entry["conceptCount"] == 8
        assert entry["sectionCount"] == len(created["sections"])

    def test_missing_reviewer(self, client):
        """Unknown ids are 404"""
        assert client.get("/api/reviewer/999999").status_code == 404
        assert client.delete("/api/reviewer/999999").status_code == 404

    def test_delete_removes_quizzes(self, client, biology_text):
        """Deleting a reviewer removes its stored quizzes"""
        created = create_reviewer(client, biology_text)
        client.post("/api/generate-questions", json={"reviewerId": created["id"], "useAi": False})

        response = client.delete(f"/api/reviewer/{created['id']}")
        assert response.json() == {"deleted": created["id"]}
        assert client.get(f"/api/reviewer/{created['id']}").status_code == 404
        assert client.get(f"/api/quiz-questions/{created['id']}").status_code == 404

    def test_model_provider_override(self, client, fake_provider, biology_text):
        """An injected provider drives model mode"""
        provider = fake_provider({
            "sections": json.dumps([{"title": "Light", "content": ["BULLET Plants capture light"]}]),
            "concepts": "Here you go:\n```json\n[{\"term\":\"Cell\",\"definition\":\"Basic unit of life\"}]\n```",
        })
        app.dependency_overrides[get_completion_provider] = lambda: provider

        data = create_reviewer(client, biology_text, use_ai=True)
        assert data["report"]["mode"] == "ai"
        assert data["sections"][0]["content"] == ["• Plants capture light"]
        assert data["concepts"][0]["term"] == "Cell"
        assert data["concepts"][0]["type"] == "ai-extracted"
        assert data["report"]["thinSourceMaterial"] is True

    def test_use_ai_false_ignores_provider(self, client, fake_provider, biology_text):
        """useAi false never calls the provider"""
        provider = fake_provider()
        app.dependency_overrides[get_completion_provider] = lambda: provider
        data = create_reviewer(client, biology_text, use_ai=False)
        assert provider.calls == []
        assert data["report"]["mode"] == "heuristic"


class TestQuizEndpoints:
    def test_questions_for_stored_reviewer(self, client, biology_text):
        """Questions come from the stored reviewer and can be fetched again"""
        created = create_reviewer(client, biology_text)
        response = client.post("/api/generate-questions", json={"reviewerId": created["id"], "useAi": False})
        assert response.status_code == 200
        data = response.json()
        questions = data["questions"]
        assert set(questions) == {"trueFalse", "multipleChoice", "identification", "matching"}
        assert len(questions["matching"]["easy"]["pairs"]) == 8
        for item in questions["multipleChoice"]["medium"]:
            assert item["options"][item["correctIndex"]] == item["explanation"]
        assert data["report"]["fallbackCells"] == []

        stored = client.get(f"/api/quiz-questions/{created['id']}")
        assert stored.status_code == 200
        body = stored.json()
        assert body["reviewerId"] == created["id"]
        assert body["questions"] == questions
        assert body["fallbackCells"] == []

    def test_questions_from_text(self, client, biology_text):
        """Text alone is enough and nothing is stored"""
        response = client.post("/api/generate-questions", json={"text": biology_text, "useAi": False})
        assert response.status_code == 200
        assert response.json()["questions"]["identification"]["easy"]

    def test_questions_from_concepts(self, client):
        """Client-supplied concepts are enough without text"""
        concepts = [
            {"term": "Osmosis", "definition": "movement of water across a membrane", "confidence": 0.95, "type": "definition"},
            {"term": "Diffusion", "definition": "spreading of particles from high to low", "confidence": 0.95, "type": "definition"},
        ]
        response = client.post("/api/generate-questions", json={"concepts": concepts, "useAi": False})
        assert response.status_code == 200
        data = response.json()
        assert len(data["questions"]["matching"]["easy"]["pairs"]) == 2
        assert data["report"]["thinSourceMaterial"] is True

    def test_nothing_to_work_with(self, client):
        """No text and no concepts is a client error"""
        response = client.post("/api/generate-questions", json={"text": " "})
        assert response.status_code == 400

    def test_unknown_reviewer(self, client):
        """Unknown reviewer ids are 404"""
        response = client.post("/api/generate-questions", json={"reviewerId": 999999})
        assert response.status_code == 404
        assert client.get("/api/quiz-questions/999999").status_code == 404

    def test_failing_cell_reported(self, client, fake_provider, biology_text):
        """A provider failure shows up in the report, not as an error"""
        provider = fake_provider({"trueFalse": {"easy": RuntimeError("model offline")}})
        app.dependency_overrides[get_completion_provider] = lambda: provider
        response = client.post("/api/generate-questions", json={"text": biology_text})
        assert response.status_code == 200
        report = response.json()["report"]
        assert report["mode"] == "ai"
        assert "trueFalse.easy" in report["fallbackCells"]
        assert any(f["kind"] == "ProviderError" for f in report["parseFailures"])
        assert response.json()["questions"]["trueFalse"]["easy"]

    def test_check_identification(self, client):
        """Typos within 80% similarity are accepted"""
        response = client.post(
            "/api/quiz/check-identification", json={"correct": "Mitochondria", "answer": "mitocondria"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["correct"] is True
        assert 0.8 <= data["similarity"] < 1.0

        wrong = client.post("/api/quiz/check-identification", json={"correct": "Nucleus", "answer": "ribosome"})
        assert wrong.json()["correct"] is False
