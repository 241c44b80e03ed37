import unittest
import xml.etree.ElementTree as ET
from datetime import date, datetime

from sitesched.domain.task import Task
from sitesched.services.export import (
    PROJECT_NAMESPACE,
    ProjectInfo,
    export_project_xml,
)

NS = {"p": PROJECT_NAMESPACE}


class ExportTestCase(unittest.TestCase):
    def setUp(self):
        self.tasks = {
            "a": Task("a", "Excavation", datetime(2024, 6, 1, 8), datetime(2024, 6, 3, 17),
                      priority="critical", progress=50),
            "b": Task("b", "Footings", date(2024, 6, 4), date(2024, 6, 5), priority="high"),
            "m": Task("m", "Inspection passed", date(2024, 6, 6), milestone=True),
        }
        self.tasks["b"].add_predecessor("a", "FS", 1)
        self.tasks["m"].add_predecessor("b", "SS")
        self.tasks["m"].add_predecessor("ghost")

    def parse(self, xml):
        self.assertTrue(xml.startswith('<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'))
        return ET.fromstring(xml.split("\n", 1)[1])

    def test_project_fields(self):
        project = ProjectInfo(name="Lot 7", project_code="L7",
                              start_date=datetime(2024, 5, 30), end_date=datetime(2024, 6, 30))
        root = self.parse(export_project_xml(self.tasks, project))
        self.assertEqual(root.tag, f"{{{PROJECT_NAMESPACE}}}Project")
        self.assertEqual(root.find("p:Name", NS).text, "Lot 7")
        self.assertEqual(root.find("p:StartDate", NS).text, "2024-05-30T00:00:00")
        self.assertEqual(root.find("p:FinishDate", NS).text, "2024-06-30T00:00:00")
        self.assertEqual(project.file_name, "L7.xml")

    def test_project_dates_default_to_tasks(self):
        root = self.parse(export_project_xml(self.tasks))
        self.assertEqual(root.find("p:Name", NS).text, "Project")
        self.assertEqual(root.find("p:StartDate", NS).text, "2024-06-01T08:00:00")
        self.assertEqual(root.find("p:FinishDate", NS).text, "2024-06-06T00:00:00")

    def test_task_fields(self):
        root = self.parse(export_project_xml(self.tasks))
        tasks = root.findall("p:Tasks/p:Task", NS)
        self.assertEqual(len(tasks), 3)

        first = tasks[0]
        self.assertEqual(first.find("p:UID", NS).text, "1")
        self.assertEqual(first.find("p:Name", NS).text, "Excavation")
        self.assertEqual(first.find("p:Start", NS).text, "2024-06-01T08:00:00")
        self.assertEqual(first.find("p:Finish", NS).text, "2024-06-03T17:00:00")
        self.assertEqual(first.find("p:Duration", NS).text, "PT24H0M0S")
        self.assertEqual(first.find("p:PercentComplete", NS).text, "50")
        self.assertEqual(first.find("p:Priority", NS).text, "1000")
        self.assertEqual(tasks[1].find("p:Priority", NS).text, "750")
        self.assertEqual(tasks[2].find("p:Priority", NS).text, "500")
        self.assertEqual(tasks[2].find("p:Milestone", NS).text, "1")
        self.assertEqual(tasks[2].find("p:Duration", NS).text, "PT0H0M0S")

    def test_predecessor_links(self):
        root = self.parse(export_project_xml(self.tasks))
        tasks = root.findall("p:Tasks/p:Task", NS)

        link = tasks[1].find("p:PredecessorLink", NS)
        self.assertEqual(link.find("p:PredecessorUID", NS).text, "1")
        self.assertEqual(link.find("p:Type", NS).text, "1")
        self.assertEqual(link.find("p:LinkLag", NS).text, "4800")

        links = tasks[2].findall("p:PredecessorLink", NS)
        # Link to an unknown task is dropped
        self.assertEqual(len(links), 1)
        self.assertEqual(links[0].find("p:Type", NS).text, "3")

    def test_deleted_tasks_skipped(self):
        self.tasks["b"].deleted = True
        root = self.parse(export_project_xml(self.tasks))
        self.assertEqual(len(root.findall("p:Tasks/p:Task", NS)), 2)

    def test_names_are_escaped(self):
        task = Task("x", "Walls & <roof>", date(2024, 6, 1))
        root = self.parse(export_project_xml([task]))
        self.assertEqual(root.find("p:Tasks/p:Task/p:Name", NS).text, "Walls & <roof>")


if __name__ == "__main__":
    unittest.main()
