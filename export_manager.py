import pandas as pd
from datetime import datetime

EVENT_LABELS = {
    "SHIFT_START": "Início da Jornada",
    "SHIFT_END": "Fim da Jornada",
    "MEAL_START": "Início da Refeição",
    "MEAL_END": "Fim da Refeição",
    "REST_START": "Início do Descanso",
    "REST_END": "Fim do Descanso",
    "DISPOSAL_START": "Início à Disposição",
    "DISPOSAL_END": "Fim à Disposição",
    "INSPECTION_START": "Início da Fiscalização",
    "INSPECTION_END": "Fim da Fiscalização",
}


class ExportManager:
    @staticmethod
    def export_to_excel(data, filepath):
        """
        Exporta o relatório para um arquivo Excel com várias abas
        (Resumo, Jornadas, Eventos, Anomalias).
        """
        with pd.ExcelWriter(filepath, engine='openpyxl') as writer:
            # 1. Resumo
            metadata = data.get('metadata', {})
            driver = data.get('driver', {})
            summaries = data.get('daily_summaries', [])

            summary_data = {
                'Campo': [
                    'Arquivo', 'Gerado em', 'Motorista', 'CPF', 'Status',
                    'Estado Atual', 'Eventos', 'Dias', 'Dias com Anomalias',
                ],
                'Valor': [
                    metadata.get('filename', 'N/A'),
                    metadata.get('generated_at', datetime.now().strftime("%Y-%m-%d %H:%M")),
                    driver.get('name', 'N/A'),
                    driver.get('cpf', 'N/A'),
                    driver.get('status', 'N/A'),
                    data.get('current_state', 'N/A'),
                    metadata.get('event_count', len(data.get('events', []))),
                    len(summaries),
                    sum(1 for s in summaries if s.get('anomalies')),
                ]
            }
            pd.DataFrame(summary_data).to_excel(writer, sheet_name='Resumo', index=False)

            # 2. Jornadas diárias
            if summaries:
                rows = [ExportManager._summary_row(s) for s in summaries]
                pd.DataFrame(rows).to_excel(writer, sheet_name='Jornadas', index=False)

            # 3. Eventos
            event_rows = ExportManager._event_rows(data)
            if event_rows:
                pd.DataFrame(event_rows).to_excel(writer, sheet_name='Eventos', index=False)

            # 4. Anomalias
            anomaly_rows = [
                {'Data': s.get('date'), 'Anomalia': a}
                for s in summaries for a in s.get('anomalies', [])
            ]
            if anomaly_rows:
                pd.DataFrame(anomaly_rows).to_excel(writer, sheet_name='Anomalias', index=False)

    @staticmethod
    def export_to_csv(data, filepath):
        """
        Exporta os eventos em um CSV plano para sistemas de folha de pagamento.
        """
        rows = ExportManager._event_rows(data)
        if rows:
            pd.DataFrame(rows).to_csv(filepath, index=False, sep=';', encoding='utf-8-sig')
        return len(rows)

    @staticmethod
    def _summary_row(summary):
        return {
            'Data': summary.get('date'),
            'Trabalhado': summary.get('total_worked'),
            'Refeição': summary.get('total_meal'),
            'Descanso': summary.get('total_rest'),
            'À Disposição': summary.get('total_disposal'),
            'Jornada Total': summary.get('total_shift'),
            'Maior Trabalho Contínuo': summary.get('longest_continuous_work'),
            'Anomalias': len(summary.get('anomalies', [])),
        }

    @staticmethod
    def _event_rows(data):
        driver_name = data.get('driver', {}).get('name', 'N/A')
        rows = []
        for ev in data.get('events', []):
            loc = ev.get('location_start') or {}
            rows.append({
                'Tipo': ev.get('type'),
                'Descrição': EVENT_LABELS.get(ev.get('type'), ev.get('type')),
                'Início': ev.get('started_at'),
                'Fim': ev.get('ended_at') or '',
                'Latitude': loc.get('latitude', ''),
                'Longitude': loc.get('longitude', ''),
                'Endereço': ev.get('address', ''),
                'Origem': ev.get('source'),
                'Veículo': ev.get('vehicle_id') or '',
                'Editado por': ev.get('edited_by') or '',
                'Motivo da Edição': ev.get('edit_reason') or '',
                'Motorista': driver_name,
            })
        return rows
