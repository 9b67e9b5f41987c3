import httpx
import pytest

from crm.core.errors import IntegrationError, NotConfiguredError, PermanentNotificationError
from crm.models.integration import Integration
from crm.services import integrations as svc
from crm.services.notifiers.evolution import EvolutionWhatsApp
from crm.services.notifiers.registry import NotifierFactory
from crm.services.notifiers.resend import ResendEmail


class TestConfig:
    def test_mask(self):
        masked = svc.mask_config({"api_token": "abcdef123456", "app_key": "curta", "base_url": "https://x"})
        assert masked == {"api_token": "••••••3456", "app_key": "••••••", "base_url": "https://x"}

    def test_merge_keeps_secret_when_mask_comes_back(self):
        merged = svc.merge_config({"api_token": "abcdef123456"}, {"api_token": "••••••3456", "base_url": "u"})
        assert merged == {"api_token": "abcdef123456", "base_url": "u"}
        assert svc.merge_config({"api_token": "a"}, {"api_token": "novo"})["api_token"] == "novo"

    def test_source_for(self):
        assert isinstance(svc.source_for(Integration(type="pipedrive", config={"api_token": "t"})), svc.PipedriveSource)
        assert isinstance(svc.source_for(Integration(type="omie", config={"app_key": "k", "app_secret": "s"})),
                          svc.OmieSource)
        with pytest.raises(NotConfiguredError):
            svc.source_for(Integration(type="omie", config={"app_key": "k"}))
        with pytest.raises(NotConfiguredError):
            svc.source_for(None)


class TestSources:
    def test_pipedrive_pages(self, monkeypatch):
        pages = [
            {"data": [{"id": 1, "name": "Ana", "phone": [{"value": "11911110000", "primary": True}],
                       "email": [{"value": "ana@x.com", "primary": False}], "org_id": {"name": "Acme"}}],
             "additional_data": {"pagination": {"more_items_in_collection": True, "next_start": 1}}},
            {"data": [{"id": 2, "name": None, "phone": [], "email": []}],
             "additional_data": {"pagination": {"more_items_in_collection": False}}},
        ]
        starts = []

        def fake_request(method, url, **kw):
            starts.append(kw["params"]["start"])
            return httpx.Response(200, json=pages[len(starts) - 1], request=httpx.Request(method, url))

        monkeypatch.setattr(httpx, "request", fake_request)
        items = list(svc.PipedriveSource("tok", "https://pd.test/v1").iter_clients())
        assert starts == [0, 1]
        assert [(i.external_id, i.full_name, i.phone, i.email, i.company_name) for i in items] == [
            ("1", "Ana", "11911110000", "ana@x.com", "Acme"),
            ("2", "Sem nome", None, None, None),
        ]

    def test_omie(self, monkeypatch):
        def fake_request(method, url, **kw):
            assert kw["json"]["call"] == "ListarClientes"
            return httpx.Response(200, request=httpx.Request(method, url), json={
                "total_de_paginas": 1,
                "clientes_cadastro": [{"codigo_cliente_omie": 77, "razao_social": "Beta LTDA", "nome_fantasia": "",
                                       "telefone1_ddd": "11", "telefone1_numero": "933334444",
                                       "cnpj_cpf": "11.222.333/0001-81"}],
            })

        monkeypatch.setattr(httpx, "request", fake_request)
        [item] = list(svc.OmieSource("k", "s", "https://omie.test").iter_clients())
        assert (item.external_id, item.full_name, item.phone, item.document) == (
            "77", "Beta LTDA", "11933334444", "11.222.333/0001-81")


    def test_non_json_response_is_an_integration_error(self, monkeypatch):
        monkeypatch.setattr(httpx, "request", lambda method, url, **kw: httpx.Response(
            200, text="<html>manutenção</html>", request=httpx.Request(method, url)))
        with pytest.raises(IntegrationError) as exc:
            list(svc.PipedriveSource("tok", "https://pd.test/v1").iter_clients())
        assert exc.value.message == "pipedrive: resposta inválida"


class TestIntegrationsApi:
    def test_secrets_are_masked(self, http, admin_headers, url):
        r = http.put(url("/integrations/evolution"), headers=admin_headers, json={
            "status": "connected",
            "config": {"api_url": "https://evo.test", "api_key": "chave-super-secreta", "instance_name": "acme"},
        })
        assert r.status_code == 200, r.text
        assert r.json()["config"]["api_key"] == "••••••reta"

        # devolver o valor mascarado não apaga a chave real
        r = http.put(url("/integrations/evolution"), headers=admin_headers, json={
            "config": {"api_key": "••••••reta", "instance_name": "acme-2"}})
        assert r.json()["config"]["instance_name"] == "acme-2"
        assert r.json()["config"]["api_key"] == "••••••reta"

        listed = http.get(url("/integrations"), headers=admin_headers).json()
        assert [i["type"] for i in listed] == ["evolution"]
        assert http.delete(url("/integrations/evolution"), headers=admin_headers).status_code == 204
        assert http.get(url("/integrations/evolution"), headers=admin_headers).status_code == 404

    def test_admin_only(self, http, member_headers, url):
        assert http.get(url("/integrations"), headers=member_headers).status_code == 403


class TestNotifierFactory:
    def test_whatsapp_requires_connected_integration(self, db, account):
        factory = NotifierFactory()
        with pytest.raises(NotConfiguredError):
            factory.whatsapp(db, account.id)
        db.add(Integration(account_id=account.id, type="evolution", status="connected",
                           config={"api_url": "https://evo.test", "api_key": "k", "instance_name": "acme"}))
        db.commit()
        assert isinstance(factory.whatsapp(db, account.id), EvolutionWhatsApp)

    def test_email_requires_api_key(self):
        with pytest.raises(NotConfiguredError):
            NotifierFactory().email()


class TestProviders:
    def test_evolution_send(self, monkeypatch):
        seen = {}

        def fake_request(method, url, **kw):
            seen.update(method=method, url=url, body=kw["json"], headers=kw["headers"])
            return httpx.Response(201, json={"key": {"id": "x"}}, request=httpx.Request(method, url))

        monkeypatch.setattr(httpx, "request", fake_request)
        EvolutionWhatsApp("https://evo.test/", "k", "acme").send("+55 11 91111-0000", "Olá")
        assert seen["url"] == "https://evo.test/message/sendText/acme"
        assert seen["body"] == {"number": "5511911110000", "text": "Olá"}
        assert seen["headers"]["apikey"] == "k"

    def test_client_error_is_permanent(self, monkeypatch):
        calls = []

        def fake_request(method, url, **kw):
            calls.append(url)
            return httpx.Response(400, json={"message": ["número inexistente"]}, request=httpx.Request(method, url))

        monkeypatch.setattr(httpx, "request", fake_request)
        with pytest.raises(PermanentNotificationError) as exc:
            ResendEmail("key", "CRM <no@x.com>", "https://resend.test/emails").send("a@x.com", "Oi", "<p>Oi</p>")
        assert exc.value.message == "número inexistente"
        assert exc.value.details == {"status": 400}
        # 4xx não repete
        assert len(calls) == 1


# ----------------------------------------------------------------------
# Grupos de WhatsApp
# ----------------------------------------------------------------------
class TestWhatsAppGroups:
    def test_sync_search_and_send(self, http, admin_headers, url, notifiers):
        notifiers.wa.groups = [
            {"id": "111@g.us", "subject": "Turma A", "desc": "Alunos", "owner": "5511999990000@s.whatsapp.net",
             "size": 30},
            {"id": "222@g.us", "subject": "Mentoria VIP", "size": 8},
            {"subject": "sem id"},
        ]
        r = http.post(url("/whatsapp-groups/sync"), headers=admin_headers)
        assert r.json() == {"created": 2, "updated": 0, "total": 2}

        notifiers.wa.groups[1]["subject"] = "Mentoria VIP 2024"
        assert http.post(url("/whatsapp-groups/sync"), headers=admin_headers).json()["updated"] == 2

        groups = http.get(url("/whatsapp-groups"), headers=admin_headers, params={"q": "mentoria"}).json()
        assert [g["name"] for g in groups] == ["Mentoria VIP 2024"]
        all_groups = http.get(url("/whatsapp-groups"), headers=admin_headers).json()
        assert [g["participant_count"] for g in all_groups] == [8, 30]

        notifiers.wa.fail_for.add("111@g.us")
        results = http.post(url("/whatsapp-groups/send"), headers=admin_headers, json={
            "group_ids": [g["id"] for g in all_groups], "text": "Aula hoje às 20h"}).json()
        by_name = {r["name"]: r for r in results}
        assert by_name["Mentoria VIP 2024"]["success"] is True
        assert by_name["Turma A"] == {"group_id": by_name["Turma A"]["group_id"], "name": "Turma A",
                                      "success": False, "error": "Número sem WhatsApp"}
        assert notifiers.wa.sent == [("222@g.us", "Aula hoje às 20h")]

    def test_toggle_ai(self, http, admin_headers, url, notifiers):
        notifiers.wa.groups = [{"id": "111@g.us", "subject": "Turma A"}]
        http.post(url("/whatsapp-groups/sync"), headers=admin_headers)
        group = http.get(url("/whatsapp-groups"), headers=admin_headers).json()[0]
        r = http.put(url(f"/whatsapp-groups/{group['id']}"), headers=admin_headers, json={"ai_analysis_enabled": True})
        assert r.json()["ai_analysis_enabled"] is True
        filtered = http.get(url("/whatsapp-groups"), headers=admin_headers, params={"ai_enabled": False}).json()
        assert filtered == []

    def test_send_requires_groups(self, http, admin_headers, url):
        r = http.post(url("/whatsapp-groups/send"), headers=admin_headers, json={"group_ids": [999], "text": "Oi"})
        assert r.status_code == 422
